"""
Test the documentation tree filter
"""
import os

import pytest

from docsync.core.tree_filter import (
    DEFAULT_FILTER,
    EXCLUDED_FILES,
    TreeFilter,
    count_doc_files,
    filter_directory,
)


def _make_tree(root, files):
    for rel in files:
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"content of {rel}")


def _retained(root):
    return sorted(
        os.path.relpath(os.path.join(current, name), root).replace(os.sep, '/')
        for current, _, names in os.walk(root)
        for name in names
    )


@pytest.fixture
def source_tree(tmp_path):
    root = tmp_path / 'src'
    _make_tree(root, [
        'index.md',
        'guide/getting-started.mdx',
        'guide/config.yml',
        'guide/nav.YAML',
        'api/schema.json',
        'api/README.MD',
        'package-lock.json',
        'pnpm-lock.yaml',
        'assets/logo.png',
        'assets/icons/star.svg',
        'scripts/build.ts',
        'go.sum',
    ])
    return root


def test_keeps_only_documentation_files(source_tree):
    stats = filter_directory(source_tree)

    assert _retained(source_tree) == [
        'api/README.MD',
        'api/schema.json',
        'guide/config.yml',
        'guide/getting-started.mdx',
        'guide/nav.YAML',
        'index.md',
    ]
    assert stats.kept == 6
    assert stats.removed_files == 6


def test_removes_directories_left_empty(source_tree):
    filter_directory(source_tree)

    assert not (source_tree / 'assets').exists()
    assert not (source_tree / 'scripts').exists()
    assert (source_tree / 'guide').is_dir()
    assert source_tree.is_dir()


def test_lockfiles_removed_whatever_their_extension(tmp_path):
    root = tmp_path / 'locks'
    _make_tree(root, sorted(EXCLUDED_FILES) + ['keep.json'])

    filter_directory(root)

    assert _retained(root) == ['keep.json']


def test_filter_is_idempotent(source_tree):
    filter_directory(source_tree)
    first = _retained(source_tree)

    stats = filter_directory(source_tree)

    assert _retained(source_tree) == first
    assert stats.removed_files == 0
    assert stats.removed_dirs == 0


def test_symlinks_are_removed(tmp_path):
    root = tmp_path / 'links'
    _make_tree(root, ['a.md'])
    outside = tmp_path / 'outside.md'
    outside.write_text('secret')
    os.symlink(outside, root / 'link.md')

    filter_directory(root)

    assert _retained(root) == ['a.md']
    assert outside.exists()


def test_missing_directory_is_not_an_error(tmp_path):
    stats = filter_directory(tmp_path / 'missing')
    assert stats.kept == 0


def test_count_doc_files(source_tree):
    assert count_doc_files(source_tree) == 6
    assert count_doc_files(source_tree.parent / 'nope') == 0


def test_custom_allow_set(tmp_path):
    root = tmp_path / 'txt'
    _make_tree(root, ['a.txt', 'b.md'])

    TreeFilter(allowed_extensions={'.TXT'}).apply(root)

    assert _retained(root) == ['a.txt']


def test_is_allowed():
    assert DEFAULT_FILTER.is_allowed('README.md')
    assert DEFAULT_FILTER.is_allowed('nav.Yaml')
    assert not DEFAULT_FILTER.is_allowed('yarn.lock')
    assert not DEFAULT_FILTER.is_allowed('package-lock.json')
    assert not DEFAULT_FILTER.is_allowed('Makefile')


def test_shell_commands_share_the_allow_set():
    commands = DEFAULT_FILTER.shell_commands('/sandbox/docs/nuxt')

    assert len(commands) == 4
    assert commands[0] == "find /sandbox/docs/nuxt -type l -delete"
    for ext in ('.md', '.mdx', '.yml', '.yaml', '.json'):
        assert f"-iname '*{ext}'" in commands[1]
    assert "-name package-lock.json" in commands[2]
    assert commands[3].endswith("-mindepth 1 -type d -empty -delete")

    count = DEFAULT_FILTER.shell_count_command('/sandbox/docs/nuxt')
    assert count.endswith('| wc -l')
    assert "-name go.sum" in count
