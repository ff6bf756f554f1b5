"""
Test the docsync command-line interface
"""
import json

import pytest
import responses

from docsync import config, main
from docsync.core.versions import JsonVersionStore
from docsync.models import VersionRecord


@pytest.fixture
def env(tmp_path, monkeypatch):
    monkeypatch.setattr(config, 'config', config.config)
    sources = tmp_path / 'sources.json'
    sources.write_text(json.dumps([
        {'id': 'nuxt-icon', 'readmeOnly': True, 'repo': 'nuxt/icon'},
        {'id': 'h3', 'repo': 'unjs/h3', 'contentPath': 'docs'},
        {'id': 'learn-vue', 'type': 'channel', 'channelId': 'UC1'},
    ]))
    values = {
        'LOG_DIR': str(tmp_path / 'logs'),
        'SOURCES_FILE': str(sources),
        'VERSIONS_FILE': str(tmp_path / 'meta' / 'versions.json'),
        'WORKSPACE_DIR': str(tmp_path / 'workspaces'),
        'CHECKPOINT_DIR': '',
        'SANDBOX_CONTAINER': '',
        'GITHUB_TOKEN': '',
        'SNAPSHOT_REPO': '',
    }
    for key, value in values.items():
        monkeypatch.setenv(key, value)
    return tmp_path


def _run(argv):
    with pytest.raises(SystemExit) as exc_info:
        main.main(argv)
    return exc_info.value.code


def test_parser_sync_flags():
    args = main.build_parser().parse_args(['sync', '--reset', '--no-push', '-s', 'nuxt', '--run-id', 'r1'])

    assert args.command == 'sync'
    assert args.reset and args.no_push
    assert args.source == 'nuxt'
    assert args.run_id == 'r1'
    assert args.sandbox is None


def test_parser_rejects_unknown_source_type():
    with pytest.raises(SystemExit):
        main.build_parser().parse_args(['sources', '-t', 'ftp'])


def test_no_command_exits_with_error(env):
    assert _run([]) == 1


def test_sources_lists_catalog(env, capsys):
    assert _run(['sources']) == 0

    lines = capsys.readouterr().out.splitlines()
    assert [line.split()[0] for line in lines] == ['nuxt-icon', 'h3', 'learn-vue']
    assert 'unjs/h3' in lines[1]


def test_sources_filtered_by_type(env, capsys):
    assert _run(['sources', '-t', 'channel']) == 0

    assert capsys.readouterr().out.split() == ['learn-vue', 'channel', 'UC1']


def test_versions_lists_recorded_versions(env, capsys):
    JsonVersionStore(str(env / 'meta' / 'versions.json')).upsert(
        VersionRecord('h3', '[branch]-main', 'branch', 'main'))

    assert _run(['versions', '-s', 'h3']) == 0

    out = capsys.readouterr().out
    assert 'h3' in out
    assert '[branch]-main' in out


def test_config_file_option(env, tmp_path, capsys, monkeypatch):
    monkeypatch.delenv('SOURCES_FILE')
    conf = tmp_path / 'docsync.conf'
    conf.write_text(f"SOURCES_FILE={env / 'sources.json'}\n")

    assert _run(['--config', str(conf), 'sources']) == 0
    assert len(capsys.readouterr().out.splitlines()) == 3


def test_push_without_token_exits_with_error(env):
    assert _run(['sync', '-s', 'h3']) == 1


@responses.activate
def test_dry_run_sync_of_readme_source(env, capsys):
    responses.add(responses.GET, 'https://raw.githubusercontent.com/nuxt/icon/main/README.md', body=b'# Nuxt Icon')

    assert _run(['sync', '--no-push', '-s', 'nuxt-icon', '--run-id', 'cli-run', '--json']) == 0

    result = json.loads(capsys.readouterr().out)
    assert result['runId'] == 'cli-run'
    assert result['summary'] == {'total': 1, 'success': 1, 'failed': 0, 'files': 1}
    assert result['push'] is None
    assert (env / 'logs' / 'stats_sync_cli-run.txt').exists()
    assert not (env / 'workspaces' / 'cli-run').exists()
