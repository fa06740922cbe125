"""Tests for loading viewer configuration."""

from pathlib import Path

import pytest

from viewer_config import DEFAULT_BREAKPOINT, ViewerConfig, load_config
from viewer_errors import ViewerConfigError


def test_defaults_without_file():
    config = load_config(None)
    assert config == ViewerConfig()
    assert config.sidebar_breakpoint == DEFAULT_BREAKPOINT
    assert config.manifest_path == Path('docs') / 'manifest.yaml'


def test_file_values_and_relative_paths(tmp_path):
    path = tmp_path / 'viewer.yaml'
    path.write_text('site_title: Docs\ndocs_dir: content\nsidebar_breakpoint: 900\nfetch_timeout: 2\n')

    config = load_config(path)

    assert config.site_title == 'Docs'
    assert config.docs_dir == tmp_path.resolve() / 'content'
    assert config.manifest_path == tmp_path.resolve() / 'content' / 'manifest.yaml'
    assert config.sidebar_breakpoint == 900
    assert config.fetch_timeout == 2.0


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / 'viewer.yaml'
    path.write_text('')
    assert load_config(path) == ViewerConfig()


@pytest.mark.parametrize('text, match', [
    ('colour: blue\n', 'Unknown config keys'),
    ('port: eighty\n', "Invalid value for 'port'"),
    ('site_title: 5\n', "Invalid value for 'site_title'"),
    ('sidebar_breakpoint: 0\n', 'must be positive'),
    ('fetch_timeout: -1\n', 'must be positive'),
    ('port: 70000\n', 'port must be'),
    ('- a\n- b\n', 'must be a mapping'),
    ('port: [\n', 'Invalid YAML'),
    ('host:\n', "Missing value for 'host'"),
])
def test_invalid_files(tmp_path, text, match):
    path = tmp_path / 'viewer.yaml'
    path.write_text(text)
    with pytest.raises(ViewerConfigError, match=match):
        load_config(path)


def test_missing_file(tmp_path):
    with pytest.raises(ViewerConfigError, match='Could not read'):
        load_config(tmp_path / 'absent.yaml')


def test_overrides_skip_none():
    config = ViewerConfig(port=9000)
    assert config.with_overrides(port=None, host=None) is config
    assert config.with_overrides(port=8081).port == 8081


def test_override_docs_dir_moves_default_manifest(tmp_path):
    config = ViewerConfig().with_overrides(docs_dir=tmp_path)
    assert config.manifest_path == tmp_path / 'manifest.yaml'
