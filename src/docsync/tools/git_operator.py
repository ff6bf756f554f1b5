"""Local git operations: shallow sparse checkouts of documentation sources"""

import shutil
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from git import Repo, GitCommandError
from loguru import logger

from docsync.errors import SourceSyncError


def authenticated_repo_url(location: str, token: Optional[str] = None) -> str:
    """
    Build the HTTPS clone URL of a GitHub repository.

    Args:
        location: Repository in 'owner/repo' format
        token: Optional token, embedded as x-access-token credentials

    Returns:
        Clone URL (token URL-encoded so '+', '/' and '=' survive)
    """
    if not token:
        return f"https://github.com/{location}.git"
    return f"https://x-access-token:{quote(token, safe='')}@github.com/{location}.git"


def redact(text: str, token: Optional[str]) -> str:
    """Remove a token (raw and URL-encoded) from error output"""
    if not token:
        return text
    return text.replace(quote(token, safe=''), '***').replace(token, '***')


class GitOperator:
    """
    Git operations wrapper for fetching documentation sources.

    Handles:
    - Shallow, single-branch, blob-less clones
    - Sparse checkout limited to a content path
    """

    def __init__(self, token: Optional[str] = None):
        """
        Initialize GitOperator.

        Args:
            token: Token for private repositories (optional)
        """
        self.token = token
        logger.debug("GitOperator initialized")

    def sparse_checkout(self, location: str, ref: str, dest: str, subpath: str = '') -> Path:
        """
        Clone `location` at `ref` into `dest`, checking out only `subpath`.

        Equivalent of:
            git clone --depth 1 --single-branch --branch <ref> --filter=blob:none --sparse <url> <dest>
            git -C <dest> sparse-checkout set <subpath>

        Args:
            location: Repository in 'owner/repo' format
            ref: Branch or tag name
            dest: Target directory (must not exist or be empty)
            subpath: Path inside the repository ('' for the whole tree)

        Returns:
            Path of the checked out content directory

        Raises:
            SourceSyncError: If clone or checkout fails, or subpath is missing
        """
        url = authenticated_repo_url(location, self.token)
        dest_path = Path(dest)
        if dest_path.exists():
            shutil.rmtree(dest_path, ignore_errors=True)

        try:
            repo = Repo.clone_from(
                url,
                dest_path,
                multi_options=[
                    '--depth=1',
                    '--single-branch',
                    f'--branch={ref}',
                    '--filter=blob:none',
                    '--sparse',
                ],
            )
            logger.debug(f"Cloned {location}@{ref} into {dest_path}")

            if subpath:
                repo.git.sparse_checkout('set', subpath)
                logger.debug(f"Sparse checkout set to: {subpath}")
        except GitCommandError as e:
            raise SourceSyncError(
                f"Failed to clone repository {location}",
                why=redact(str(e.stderr or e), self.token),
            )

        content_dir = dest_path / subpath if subpath else dest_path
        if not content_dir.is_dir():
            raise SourceSyncError(
                f"Content path not found in {location}@{ref}",
                why=f"'{subpath}' does not exist or is not a directory",
            )

        # the checkout metadata must not end up in the snapshot
        shutil.rmtree(dest_path / '.git', ignore_errors=True)
        return content_dir
