"""
Repo domain: sync git repositories (full tree or README only)
"""

from docsync.domains.repo.fetcher import RepoFetcher

__all__ = [
    'RepoFetcher',
]
