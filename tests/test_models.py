"""
Test source parsing and result models
"""
from datetime import datetime, timezone

import pytest

from docsync.models import (
    AdditionalMerge,
    ChannelSource,
    PushResult,
    ReadmeOnlySource,
    RepoSource,
    SnapshotConfig,
    SyncResult,
    TreeEntry,
    VersionRecord,
    source_from_dict,
    version_folder_name,
)


def test_version_folder_name():
    assert version_folder_name('branch', 'main') == '[branch]-main'
    assert version_folder_name('tag', 'v1.0.0') == '[tag]-v1.0.0'
    assert version_folder_name('release', 'v4.2.0') == '[release]-v4.2.0'
    with pytest.raises(ValueError):
        version_folder_name('commit', 'abc')


def test_repo_source_defaults():
    source = RepoSource(id='nuxt', location='nuxt/nuxt')

    assert source.label == 'nuxt'
    assert source.ref == 'main'
    assert source.ref_type == 'branch'
    assert source.output_folder == 'nuxt'
    assert not source.wants_latest_release


@pytest.mark.parametrize('kwargs', [
    {'id': '', 'location': 'a/b'},
    {'id': 'x', 'location': 'no-slash'},
    {'id': 'x', 'location': 'a/b', 'ref_type': 'commit'},
])
def test_invalid_repo_sources(kwargs):
    with pytest.raises(ValueError):
        RepoSource(**kwargs)


def test_camel_case_catalog_entry():
    source = source_from_dict({
        'id': 'nuxt',
        'type': 'github',
        'repo': 'nuxt/nuxt',
        'branch': 'v4',
        'contentPath': 'docs',
        'outputPath': 'nuxt-docs',
        'basePath': '/tmp/sandbox',
        'additionalSyncs': [{'repo': 'nuxt/nuxt.com', 'branch': 'main', 'contentPath': 'content'}],
    })

    assert isinstance(source, RepoSource)
    assert source.location == 'nuxt/nuxt'
    assert source.ref == 'v4'
    assert source.content_subpath == 'docs'
    assert source.output_folder == 'nuxt-docs'
    assert source.additional_merges == [AdditionalMerge('nuxt/nuxt.com', 'main', 'content')]


def test_readme_only_flag():
    source = source_from_dict({'id': 'x', 'readmeOnly': True, 'repo': 'a/b', 'branch': 'main'})

    assert isinstance(source, ReadmeOnlySource)
    assert source.type == 'readme-only-repo'


def test_latest_release_source():
    source = source_from_dict({'id': 'x', 'repo': 'a/b', 'ref': 'Latest', 'refType': 'release'})

    assert source.wants_latest_release


def test_channel_source():
    source = source_from_dict({'id': 'learn-vue', 'type': 'youtube', 'channelId': 'UC1', 'maxVideos': 5})

    assert isinstance(source, ChannelSource)
    assert source.max_items == 5
    with pytest.raises(ValueError):
        source_from_dict({'id': 'y', 'type': 'channel'})


def test_unknown_type():
    with pytest.raises(ValueError, match='Unknown source type'):
        source_from_dict({'id': 'x', 'type': 'ftp'})


def test_sync_result_dict_omits_absent_fields():
    failed = SyncResult(source_id='x', success=False, error='boom', label='X')
    synced = SyncResult(source_id='nuxt', success=True, file_count=4, version_folder_name='[tag]-v1',
                        ref_type='tag', resolved_ref='v1')

    assert failed.to_dict() == {
        'sourceId': 'x', 'label': 'X', 'success': False, 'fileCount': 0, 'durationMs': 0, 'error': 'boom',
    }
    assert synced.to_dict()['resolvedRef'] == 'v1'
    assert 'error' not in synced.to_dict()


def test_version_record_round_trip():
    record = VersionRecord('nuxt', '[branch]-main', 'branch', 'main',
                           synced_at=datetime(2025, 7, 1, 12, 0, tzinfo=timezone.utc))

    assert VersionRecord.from_dict(record.to_dict()) == record
    assert record.key == ('nuxt', '[branch]-main')


def test_token_for_falls_back():
    config = SnapshotConfig(token='push', source_token='read', tokens_by_source={'private': 'own'})

    assert config.token_for('private') == 'own'
    assert config.token_for('nuxt') == 'read'
    assert SnapshotConfig(token='push').token_for('nuxt') == 'push'
    assert SnapshotConfig().token_for('nuxt') is None


def test_commit_message_template():
    config = SnapshotConfig(commit_message='sync {sources}/{files}')

    assert config.format_message(3, 42) == 'sync 3/42'


def test_tree_entry_payload():
    assert TreeEntry('docs/a.md', content='# a').to_payload() == {
        'path': 'docs/a.md', 'mode': '100644', 'type': 'blob', 'content': '# a',
    }
    assert TreeEntry('docs/b.png', sha='abc').to_payload()['sha'] == 'abc'


def test_push_result_dict():
    assert PushResult(success=False, error='No files to push').to_dict() == {
        'success': False, 'error': 'No files to push',
    }
    assert PushResult(success=True, commit_sha='c1', files_changed=2).to_dict() == {
        'success': True, 'commitSha': 'c1', 'filesChanged': 2,
    }
