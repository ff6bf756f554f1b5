"""
Shared fixtures: src on sys.path and an in-memory GitHub git-data API
"""
import base64
import hashlib
import json
import re
import sys
from pathlib import Path
from urllib.parse import urlparse

import pytest
import responses

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from docsync.core.cache import TTLCache
from docsync.core.workspace import LocalWorkspace
from docsync.tools.github_client import GitHubClient


API_URL = 'https://api.github.test'
RAW_URL = 'https://raw.github.test'
SNAPSHOT_REPO = 'acme/docs-snapshot'


def _sha(kind: str, data: bytes) -> str:
    return hashlib.sha1(kind.encode('ascii') + b'\0' + data).hexdigest()


class FakeGitHubAPI:
    """
    In-memory git object store of one repository behind the REST endpoints
    used by the snapshot committer.

    Attributes:
        blobs: sha -> content
        trees: sha -> {path: blob sha}
        commits: sha -> {'tree': sha, 'parents': [...], 'message': str}
        refs: branch -> commit sha
        calls: (method, path, json body) of every request
        ref_update_status: Status returned by PATCH ref instead of applying it
        fail_status: {(method, step path fragment): status} forced failures
    """

    def __init__(self, rsps: responses.RequestsMock, repo: str = SNAPSHOT_REPO, api_url: str = API_URL):
        self.repo = repo
        self.blobs = {}
        self.trees = {}
        self.commits = {}
        self.refs = {}
        self.calls = []
        self.ref_update_status = None
        self.fail_status = {}

        prefix = re.escape(f"{api_url}/repos/{repo}/git/")
        rsps.add_callback(responses.GET, re.compile(prefix + r"ref/heads/"), callback=self._get_ref)
        rsps.add_callback(responses.GET, re.compile(prefix + r"commits/"), callback=self._get_commit)
        rsps.add_callback(responses.GET, re.compile(prefix + r"trees/"), callback=self._get_tree)
        rsps.add_callback(responses.GET, re.compile(prefix + r"blobs/"), callback=self._get_blob)
        rsps.add_callback(responses.POST, re.compile(prefix + r"blobs"), callback=self._create_blob)
        rsps.add_callback(responses.POST, re.compile(prefix + r"trees"), callback=self._create_tree)
        rsps.add_callback(responses.POST, re.compile(prefix + r"commits"), callback=self._create_commit)
        rsps.add_callback(responses.POST, re.compile(prefix + r"refs"), callback=self._create_ref)
        rsps.add_callback(responses.PATCH, re.compile(prefix + r"refs/heads/"), callback=self._update_ref)

    # ============ helpers ============

    def _record(self, request):
        body = json.loads(request.body) if request.body else None
        path = urlparse(request.url).path
        self.calls.append((request.method, path, body))
        return path, body

    def _forced_failure(self, method, path):
        for (fail_method, fragment), status in self.fail_status.items():
            if fail_method == method and fragment in path:
                return (status, {}, json.dumps({'message': f"forced {status}"}))
        return None

    @staticmethod
    def _ok(data, status=200):
        return (status, {'Content-Type': 'application/json'}, json.dumps(data))

    @staticmethod
    def _error(status, message):
        return (status, {'Content-Type': 'application/json'}, json.dumps({'message': message}))

    def calls_to(self, method, fragment=''):
        return [c for c in self.calls if c[0] == method and fragment in c[1]]

    def put_blob(self, content: bytes) -> str:
        sha = _sha('blob', content)
        self.blobs[sha] = content
        return sha

    def seed_branch(self, branch: str, files: dict) -> str:
        """Create a commit holding `files` ({path: bytes}) on `branch`"""
        tree = {path: self.put_blob(content) for path, content in files.items()}
        tree_sha = _sha('tree', json.dumps(sorted(tree.items())).encode())
        self.trees[tree_sha] = tree
        commit_sha = _sha('commit', f"{tree_sha}:seed".encode())
        self.commits[commit_sha] = {'tree': tree_sha, 'parents': [], 'message': 'seed'}
        self.refs[branch] = commit_sha
        return commit_sha

    def branch_files(self, branch: str) -> dict:
        tree = self.trees[self.commits[self.refs[branch]]['tree']]
        return {path: self.blobs[sha] for path, sha in tree.items()}

    # ============ endpoints ============

    def _get_ref(self, request):
        path, _ = self._record(request)
        branch = path.split('/ref/heads/', 1)[1]
        if branch not in self.refs:
            return self._error(404, 'Not Found')
        return self._ok({'ref': f"refs/heads/{branch}", 'object': {'sha': self.refs[branch], 'type': 'commit'}})

    def _get_commit(self, request):
        path, _ = self._record(request)
        sha = path.rsplit('/', 1)[1]
        if sha not in self.commits:
            return self._error(404, 'Not Found')
        commit = self.commits[sha]
        return self._ok({'sha': sha, 'tree': {'sha': commit['tree']}, 'parents': [{'sha': p} for p in commit['parents']]})

    def _get_tree(self, request):
        path, _ = self._record(request)
        sha = path.rsplit('/', 1)[1]
        if sha not in self.trees:
            return self._error(404, 'Not Found')
        items = [{'path': p, 'mode': '100644', 'type': 'blob', 'sha': s} for p, s in sorted(self.trees[sha].items())]
        return self._ok({'sha': sha, 'tree': items, 'truncated': False})

    def _get_blob(self, request):
        path, _ = self._record(request)
        sha = path.rsplit('/', 1)[1]
        if sha not in self.blobs:
            return self._error(404, 'Not Found')
        return self._ok({'sha': sha, 'content': base64.b64encode(self.blobs[sha]).decode('ascii'), 'encoding': 'base64'})

    def _create_blob(self, request):
        path, body = self._record(request)
        failure = self._forced_failure('POST', path)
        if failure:
            return failure
        content = base64.b64decode(body['content']) if body.get('encoding') == 'base64' else body['content'].encode('utf-8')
        return self._ok({'sha': self.put_blob(content)}, status=201)

    def _create_tree(self, request):
        path, body = self._record(request)
        failure = self._forced_failure('POST', path)
        if failure:
            return failure
        base = body.get('base_tree')
        if base is not None and base not in self.trees:
            return self._error(422, 'Invalid base_tree')
        tree = dict(self.trees[base]) if base else {}
        for entry in body['tree']:
            if entry.get('sha'):
                if entry['sha'] not in self.blobs:
                    return self._error(422, f"Invalid sha for {entry['path']}")
                tree[entry['path']] = entry['sha']
            else:
                tree[entry['path']] = self.put_blob(entry['content'].encode('utf-8'))
        sha = _sha('tree', json.dumps(sorted(tree.items())).encode())
        self.trees[sha] = tree
        return self._ok({'sha': sha}, status=201)

    def _create_commit(self, request):
        path, body = self._record(request)
        failure = self._forced_failure('POST', path)
        if failure:
            return failure
        sha = _sha('commit', f"{body['tree']}:{body['parents']}:{body['message']}:{len(self.commits)}".encode())
        self.commits[sha] = {'tree': body['tree'], 'parents': list(body['parents']), 'message': body['message']}
        return self._ok({'sha': sha}, status=201)

    def _create_ref(self, request):
        path, body = self._record(request)
        branch = body['ref'][len('refs/heads/'):]
        if branch in self.refs:
            return self._error(422, 'Reference already exists')
        self.refs[branch] = body['sha']
        return self._ok({'ref': body['ref'], 'object': {'sha': body['sha']}}, status=201)

    def _update_ref(self, request):
        path, body = self._record(request)
        if self.ref_update_status is not None:
            return self._error(self.ref_update_status, 'Update is not a fast forward')
        failure = self._forced_failure('PATCH', path)
        if failure:
            return failure
        branch = path.split('/refs/heads/', 1)[1]
        new_commit = self.commits.get(body['sha'])
        if not body.get('force') and (new_commit is None or self.refs.get(branch) not in new_commit['parents']):
            return self._error(422, 'Update is not a fast forward')
        self.refs[branch] = body['sha']
        return self._ok({'ref': f"refs/heads/{branch}", 'object': {'sha': body['sha']}})


@pytest.fixture
def mocked_responses():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


@pytest.fixture
def github_api(mocked_responses):
    return FakeGitHubAPI(mocked_responses)


@pytest.fixture
def github_client():
    return GitHubClient(token='test-token', api_url=API_URL, raw_url=RAW_URL, cache=TTLCache())


@pytest.fixture
def workspace(tmp_path):
    return LocalWorkspace(str(tmp_path / 'workspace'))
