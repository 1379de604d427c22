"""Tests for configuration loading and validation."""

from argparse import Namespace

import pytest
import yaml

from config_loader import ConfigLoader, get_nested


class TestLoad:
    def test_defaults_resolve_from_environment(self, marketo_env):
        config = ConfigLoader.load()

        assert config['marketo']['client_id'] == 'client-id'
        assert config['marketo']['rest_url'] == marketo_env['MARKETO_REST_URL']
        assert config['export']['batch_size'] == 5
        assert config['export']['max_pages'] == 50

    def test_file_overrides_defaults(self, marketo_env, tmp_path, monkeypatch):
        config_file = tmp_path / 'config.yaml'
        config_file.write_text(yaml.safe_dump({
            'export': {'batch_size': 10, 'output_directory': '${EXPORT_DIR}'}
        }), encoding='utf-8')
        monkeypatch.setenv('EXPORT_DIR', str(tmp_path / 'out'))

        config = ConfigLoader.load(str(config_file))

        assert config['export']['batch_size'] == 10
        assert config['export']['page_size'] == 200
        assert config['export']['output_directory'] == str(tmp_path / 'out')

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ConfigLoader.load(str(tmp_path / 'absent.yaml'))

    def test_non_mapping_file(self, tmp_path):
        config_file = tmp_path / 'config.yaml'
        config_file.write_text('- just\n- a list\n', encoding='utf-8')

        with pytest.raises(ValueError):
            ConfigLoader.load(str(config_file))


class TestValidate:
    def test_valid_config_passes(self, test_config):
        ConfigLoader.validate(test_config)

    def test_all_missing_variables_listed(self, no_marketo_env):
        config = ConfigLoader.load()

        with pytest.raises(ValueError) as exc_info:
            ConfigLoader.validate(config)

        message = str(exc_info.value)
        assert message.startswith('Missing required environment variables:')
        for name in ('MARKETO_CLIENT_ID', 'MARKETO_CLIENT_SECRET',
                     'MARKETO_IDENTITY_URL', 'MARKETO_REST_URL'):
            assert name in message

    def test_bad_url(self, test_config):
        test_config['marketo']['rest_url'] = 'ftp://example.com/rest'
        with pytest.raises(ValueError, match='http or https'):
            ConfigLoader.validate(test_config)

    @pytest.mark.parametrize('path, value', [
        ('batch_size', 0),
        ('page_size', 201),
        ('max_pages', -1),
        ('batch_delay', -0.5),
    ])
    def test_bad_export_values(self, test_config, path, value):
        test_config['export'][path] = value
        with pytest.raises(ValueError):
            ConfigLoader.validate(test_config)


class TestMergeWithArgs:
    def test_cli_wins(self, test_config):
        args = Namespace(output='/tmp/out', zip=True, batch_size=3, page_size=None,
                         max_pages=10, log_file=None, verbose=2)

        merged = ConfigLoader.merge_with_args(test_config, args)

        assert merged['export']['output_directory'] == '/tmp/out'
        assert merged['export']['create_zip'] is True
        assert merged['export']['batch_size'] == 3
        assert merged['export']['page_size'] == 200
        assert merged['export']['max_pages'] == 10
        assert merged['logging']['level'] == 'DEBUG'
        assert test_config['export']['batch_size'] == 5

    def test_serve_namespace_without_export_options(self, test_config):
        merged = ConfigLoader.merge_with_args(test_config, Namespace(verbose=0))
        assert merged['export'] == test_config['export']


def test_get_nested():
    config = {'a': {'b': {'c': 1}}}
    assert get_nested(config, 'a.b.c') == 1
    assert get_nested(config, 'a.x', 'default') == 'default'
