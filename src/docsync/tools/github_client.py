# Copyright 2021-present StarRocks, Inc. All rights reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""GitHub REST client for git-data objects, releases and raw files"""

import base64
from typing import Any, Dict, List, Optional

import requests
from loguru import logger

from docsync.core.cache import TTLCache
from docsync.errors import GitHubAPIError, SourceSyncError
from docsync.models import TreeEntry


GITHUB_API_URL = 'https://api.github.com'
RAW_CONTENT_URL = 'https://raw.githubusercontent.com'
GITHUB_API_VERSION = '2022-11-28'


class GitHubClient:
    """
    Thin wrapper over the GitHub REST API.

    Handles:
    - Git data objects (refs, commits, blobs, trees) of one repository
    - Latest release lookup (cached)
    - Raw file download

    Every non-2xx response raises GitHubAPIError carrying the step name,
    HTTP status and the remote's response body.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        api_url: str = GITHUB_API_URL,
        raw_url: str = RAW_CONTENT_URL,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
        cache: Optional[TTLCache] = None,
        release_cache_ttl: float = 600,
    ):
        """
        Initialize GitHubClient.

        Args:
            token: Bearer token (optional for public read access)
            api_url: API base URL (GitHub Enterprise installs differ)
            raw_url: Raw content base URL
            timeout: Per-request timeout in seconds
            session: requests session to reuse connections
            cache: Cache for release tag lookups
            release_cache_ttl: Seconds a resolved release tag stays cached
        """
        self.token = token
        self.api_url = api_url.rstrip('/')
        self.raw_url = raw_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.cache = cache or TTLCache()
        self.release_cache_ttl = release_cache_ttl

        logger.debug(f"GitHubClient initialized: api_url={self.api_url}")

    def with_token(self, token: Optional[str]) -> 'GitHubClient':
        """Client sharing session and cache but authenticating with another token"""
        if token == self.token:
            return self
        return GitHubClient(
            token=token,
            api_url=self.api_url,
            raw_url=self.raw_url,
            timeout=self.timeout,
            session=self.session,
            cache=self.cache,
            release_cache_ttl=self.release_cache_ttl,
        )

    def _headers(self) -> Dict[str, str]:
        headers = {
            'Accept': 'application/vnd.github+json',
            'X-GitHub-Api-Version': GITHUB_API_VERSION,
        }
        if self.token:
            headers['Authorization'] = f"Bearer {self.token}"
        return headers

    def _request(self, step: str, method: str, path: str, payload: Optional[Dict[str, Any]] = None,
                 allow_404: bool = False, params: Optional[Dict[str, str]] = None) -> Optional[Dict[str, Any]]:
        url = f"{self.api_url}{path}"
        try:
            response = self.session.request(
                method, url, json=payload, params=params, headers=self._headers(), timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise GitHubAPIError(step, None, str(e))

        if allow_404 and response.status_code == 404:
            return None
        if not response.ok:
            logger.debug(f"{method} {url} -> {response.status_code}: {response.text}")
            raise GitHubAPIError(step, response.status_code, response.text)
        return response.json()

    # ============ Git data API ============

    def get_branch_head(self, repo: str, branch: str) -> Optional[str]:
        """Commit SHA the branch points at, None if the branch does not exist"""
        data = self._request('Get ref', 'GET', f"/repos/{repo}/git/ref/heads/{branch}", allow_404=True)
        if data is None:
            return None
        return data['object']['sha']

    def get_commit_tree(self, repo: str, commit_sha: str) -> str:
        data = self._request('Get commit', 'GET', f"/repos/{repo}/git/commits/{commit_sha}")
        return data['tree']['sha']

    def create_blob(self, repo: str, content: bytes) -> str:
        data = self._request('Create blob', 'POST', f"/repos/{repo}/git/blobs", {
            'content': base64.b64encode(content).decode('ascii'),
            'encoding': 'base64',
        })
        return data['sha']

    def create_tree(self, repo: str, entries: List[TreeEntry], base_tree: Optional[str] = None) -> str:
        payload: Dict[str, Any] = {'tree': [entry.to_payload() for entry in entries]}
        if base_tree:
            payload['base_tree'] = base_tree
        data = self._request('Create tree', 'POST', f"/repos/{repo}/git/trees", payload)
        return data['sha']

    def create_commit(self, repo: str, message: str, tree_sha: str, parents: List[str]) -> str:
        data = self._request('Create commit', 'POST', f"/repos/{repo}/git/commits", {
            'message': message,
            'tree': tree_sha,
            'parents': parents,
        })
        return data['sha']

    def update_branch(self, repo: str, branch: str, commit_sha: str) -> None:
        """Fast-forward an existing branch, never forced"""
        self._request('Update ref', 'PATCH', f"/repos/{repo}/git/refs/heads/{branch}", {
            'sha': commit_sha,
            'force': False,
        })

    def create_branch(self, repo: str, branch: str, commit_sha: str) -> None:
        self._request('Create ref', 'POST', f"/repos/{repo}/git/refs", {
            'ref': f"refs/heads/{branch}",
            'sha': commit_sha,
        })

    def get_tree_recursive(self, repo: str, tree_sha: str) -> List[Dict[str, Any]]:
        data = self._request('Get tree', 'GET', f"/repos/{repo}/git/trees/{tree_sha}",
                             params={'recursive': '1'})
        if data.get('truncated'):
            logger.warning(f"Tree listing of {repo}@{tree_sha} is truncated")
        return data.get('tree', [])

    def get_blob(self, repo: str, blob_sha: str) -> bytes:
        data = self._request('Get blob', 'GET', f"/repos/{repo}/git/blobs/{blob_sha}")
        if data.get('encoding') == 'base64':
            return base64.b64decode(data['content'])
        return data['content'].encode('utf-8')

    # ============ Releases and raw content ============

    def get_latest_release_tag(self, repo: str) -> str:
        """
        Tag name of the latest release of a repository.

        Raises:
            SourceSyncError: If the repo has no release or the lookup fails
        """
        cache_key = ('latest-release', repo)
        cached = self.cache.get(cache_key)
        if cached:
            logger.debug(f"Latest release of {repo} from cache: {cached}")
            return cached

        owner, _, name = repo.partition('/')
        if not owner or not name:
            raise SourceSyncError(f"Invalid repo format: {repo}", why="Expected owner/repo")

        try:
            data = self._request('Get latest release', 'GET', f"/repos/{owner}/{name}/releases/latest", allow_404=True)
        except GitHubAPIError as e:
            raise SourceSyncError(f"Failed to fetch latest release for {repo}", why=e.body)
        if data is None:
            raise SourceSyncError(f"No releases found for {repo}", why="This repository has no GitHub releases")

        tag = data['tag_name']
        self.cache.put_for(cache_key, tag, self.release_cache_ttl)
        logger.debug(f"Latest release of {repo}: {tag}")
        return tag

    def fetch_raw_file(self, repo: str, ref: str, path: str) -> bytes:
        """
        Download one file from raw.githubusercontent.com.

        Raises:
            SourceSyncError: On transport failure or non-2xx status
        """
        url = f"{self.raw_url}/{repo}/{ref}/{path.lstrip('/')}"
        headers = {'Authorization': f"Bearer {self.token}"} if self.token else {}
        try:
            response = self.session.get(url, headers=headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise SourceSyncError(f"Failed to fetch {path} from {repo}", why=str(e))

        if not response.ok:
            raise SourceSyncError(
                f"Failed to fetch {path} from {repo}",
                why=f"HTTP {response.status_code} {response.reason or ''}".strip(),
            )
        return response.content
