"""
Test the repository and custom content fetchers
"""
import posixpath

import pytest
import requests.exceptions
import responses

from docsync.core.workspace import LocalWorkspace
from docsync.domains.custom import CustomFetcher
from docsync.domains.repo import RepoFetcher
from docsync.errors import SourceSyncError
from docsync.models import (
    AdditionalMerge,
    ContentFile,
    CustomSource,
    ReadmeOnlySource,
    RepoSource,
    source_from_dict,
)

from conftest import API_URL, RAW_URL


class CheckoutWorkspace(LocalWorkspace):
    """LocalWorkspace whose sparse checkouts come from in-memory repositories"""

    def __init__(self, root, repos):
        super().__init__(root)
        self.repos = repos
        self.checkouts = []

    def sparse_checkout(self, location, ref, dest, subpath='', token=None):
        self.checkouts.append((location, ref, subpath, token))
        files = self.repos.get((location, ref))
        if files is None:
            raise SourceSyncError(f"Failed to clone repository {location}", why=f"Remote branch {ref} not found")
        self.remove(dest)
        for path, content in files.items():
            if not subpath or path.startswith(subpath + '/'):
                self.write_file(posixpath.join(dest, path), content)
        content_dir = posixpath.join(dest, subpath) if subpath else dest
        if not self.exists(content_dir):
            raise SourceSyncError(f"Content path not found in {location}@{ref}")
        return str(self._resolve(content_dir))


REPOS = {
    ('nuxt/nuxt', 'main'): {
        'docs/1.getting-started/installation.md': b'# Install (core)',
        'docs/1.getting-started/nav.yml': b'title: Getting started',
        'docs/assets/diagram.png': b'\x89PNG',
        'docs/package-lock.json': b'{}',
        'packages/nuxt/index.ts': b'export {}',
    },
    ('nuxt/nuxt.com', 'main'): {
        'content/1.getting-started/installation.md': b'# Install (website)',
        'content/blog/v4.md': b'# Nuxt 4',
        'content/blog/cover.jpg': b'jpg',
    },
    ('nuxt/nuxt', 'v4.2.0'): {
        'docs/index.md': b'# Nuxt 4.2',
    },
}


@pytest.fixture
def checkout_workspace(tmp_path):
    return CheckoutWorkspace(str(tmp_path / 'ws'), REPOS)


def _files(workspace, path):
    return {rel: workspace.read_file(posixpath.join(path, rel)) for rel in workspace.list_files(path)}


def test_full_tree_is_copied_and_filtered(github_client, checkout_workspace):
    source = RepoSource(id='nuxt', label='Nuxt', location='nuxt/nuxt', content_subpath='docs')

    result = RepoFetcher(github_client).fetch(source, checkout_workspace, 'docs')

    assert result.success, result.error
    assert result.file_count == 2
    assert result.version_folder_name == '[branch]-main'
    assert result.ref_type == 'branch'
    assert result.resolved_ref == 'main'
    assert sorted(_files(checkout_workspace, 'docs/nuxt/[branch]-main')) == [
        '1.getting-started/installation.md',
        '1.getting-started/nav.yml',
    ]
    # scratch checkouts are gone
    assert checkout_workspace.list_files('.checkouts') == []


def test_additional_merge_never_overwrites(github_client, checkout_workspace):
    source = RepoSource(
        id='nuxt', location='nuxt/nuxt', content_subpath='docs',
        additional_merges=[AdditionalMerge(location='nuxt/nuxt.com', ref='main', content_subpath='content')],
    )

    result = RepoFetcher(github_client).fetch(source, checkout_workspace, 'docs')

    files = _files(checkout_workspace, 'docs/nuxt/[branch]-main')
    assert files['1.getting-started/installation.md'] == b'# Install (core)'
    assert files['blog/v4.md'] == b'# Nuxt 4'
    assert 'blog/cover.jpg' not in files
    assert result.file_count == 3


def test_failed_merge_is_skipped(github_client, checkout_workspace):
    source = RepoSource(
        id='nuxt', location='nuxt/nuxt', content_subpath='docs',
        additional_merges=[AdditionalMerge(location='nuxt/missing', ref='main')],
    )

    result = RepoFetcher(github_client).fetch(source, checkout_workspace, 'docs')

    assert result.success
    assert result.file_count == 2


def test_refetch_starts_from_empty_version_folder(github_client, checkout_workspace):
    checkout_workspace.write_file('docs/nuxt/[branch]-main/removed-upstream.md', b'old')
    source = RepoSource(id='nuxt', location='nuxt/nuxt', content_subpath='docs')

    RepoFetcher(github_client).fetch(source, checkout_workspace, 'docs')

    assert 'removed-upstream.md' not in _files(checkout_workspace, 'docs/nuxt/[branch]-main')


@responses.activate
def test_latest_release_is_resolved(github_client, checkout_workspace):
    responses.add(responses.GET, f"{API_URL}/repos/nuxt/nuxt/releases/latest", json={'tag_name': 'v4.2.0'})
    source = RepoSource(id='nuxt', location='nuxt/nuxt', ref='latest', ref_type='release',
                        content_subpath='docs', output_folder='nuxt-docs')

    result = RepoFetcher(github_client).fetch(source, checkout_workspace, 'docs')

    assert result.success, result.error
    assert result.version_folder_name == '[release]-v4.2.0'
    assert result.resolved_ref == 'v4.2.0'
    assert checkout_workspace.list_files('docs/nuxt-docs/[release]-v4.2.0') == ['index.md']


def test_source_token_is_used_for_checkouts(github_client, checkout_workspace):
    source = RepoSource(id='nuxt', location='nuxt/nuxt', content_subpath='docs')
    fetcher = RepoFetcher(github_client, token_for=lambda source_id: f"token-for-{source_id}")

    fetcher.fetch(source, checkout_workspace, 'docs')

    assert checkout_workspace.checkouts[0][3] == 'token-for-nuxt'


def test_missing_ref_fails_the_source(github_client, checkout_workspace):
    source = RepoSource(id='nuxt', location='nuxt/nuxt', ref='does-not-exist', content_subpath='docs')

    result = RepoFetcher(github_client).fetch(source, checkout_workspace, 'docs')

    assert not result.success
    assert result.file_count == 0
    assert 'Failed to clone repository nuxt/nuxt' in result.error
    assert result.duration_ms >= 0


@responses.activate
def test_readme_only_source(github_client, workspace):
    responses.add(responses.GET, f"{RAW_URL}/nuxt/icon/main/README.md", body=b'# Nuxt Icon')
    source = ReadmeOnlySource(id='nuxt-icon', location='nuxt/icon')

    result = RepoFetcher(github_client).fetch(source, workspace, 'docs')

    assert result.success
    assert result.file_count == 1
    assert workspace.read_file('docs/nuxt-icon/[branch]-main/README.md') == b'# Nuxt Icon'


@responses.activate
def test_unreachable_readme_fails_with_error(github_client, workspace):
    responses.add(responses.GET, f"{RAW_URL}/a/b/main/README.md",
                  body=requests.exceptions.ConnectionError('Name or service not known'))
    source = source_from_dict({'id': 'x', 'readmeOnly': True, 'repo': 'a/b', 'branch': 'main'})

    result = RepoFetcher(github_client).fetch(source, workspace, 'docs')

    assert result.source_id == 'x'
    assert result.success is False
    assert result.file_count == 0
    assert result.error


def test_custom_source_files_are_written_and_filtered(workspace):
    source = CustomSource(id='changelog', fetch_fn=lambda: [
        ContentFile('releases/v1.md', '# v1'),
        ContentFile('releases/v2.md', b'# v2'),
        ContentFile('releases/raw.bin', b'\x00'),
    ])

    result = CustomFetcher().fetch(source, workspace, 'docs')

    assert result.success
    assert result.file_count == 2
    assert not result.has_version
    assert workspace.list_files('docs/changelog') == ['releases/v1.md', 'releases/v2.md']


def test_custom_source_rejects_escaping_paths(workspace):
    source = CustomSource(id='evil', fetch_fn=lambda: [ContentFile('../../outside.md', '# no')])

    result = CustomFetcher().fetch(source, workspace, 'docs')

    assert not result.success
    assert 'Invalid file path' in result.error


def test_custom_source_exception_becomes_failed_result(workspace):
    def explode():
        raise RuntimeError('upstream API down')

    result = CustomFetcher().fetch(CustomSource(id='boom', fetch_fn=explode), workspace, 'docs')

    assert not result.success
    assert result.error == 'upstream API down'
