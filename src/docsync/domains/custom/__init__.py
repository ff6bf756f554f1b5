"""
Custom domain: sources backed by a user supplied function
"""

from docsync.domains.custom.fetcher import CustomFetcher

__all__ = [
    'CustomFetcher',
]
