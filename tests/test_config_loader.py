"""Tests for configuration loading, merging and validation."""

import argparse

import pytest

from config_loader import DEFAULT_CONFIG, ConfigLoader, get_nested


def namespace(**kwargs):
    defaults = {'output': None, 'merge': False, 'merged_name': None, 'localize': False, 'front_matter': False,
                'log_file': None, 'log_level': None}
    defaults.update(kwargs)
    return argparse.Namespace(**defaults)


class TestLoad:
    def test_defaults_without_file(self):
        config = ConfigLoader.load(None)
        assert config == DEFAULT_CONFIG
        assert config is not DEFAULT_CONFIG

    def test_file_values_override_defaults(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text('convert:\n  merge: true\ndownload:\n  timeout: 5\n', encoding='utf-8')
        config = ConfigLoader.load(str(path))
        assert config['convert']['merge'] is True
        assert config['convert']['image_directory'] == 'images'
        assert config['download']['timeout'] == 5
        assert config['download']['max_workers'] == 4

    def test_environment_substitution(self, tmp_path, monkeypatch):
        monkeypatch.setenv('EPUB2MD_TEST_OUT', '/tmp/books')
        path = tmp_path / 'config.yaml'
        path.write_text(
            'convert:\n  output_directory: ${EPUB2MD_TEST_OUT}/md\n'
            'download:\n  user_agent: ${EPUB2MD_UNSET_VARIABLE}\n',
            encoding='utf-8'
        )
        config = ConfigLoader.load(str(path))
        assert config['convert']['output_directory'] == '/tmp/books/md'
        assert config['download']['user_agent'] == '${EPUB2MD_UNSET_VARIABLE}'

    def test_empty_file(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text('', encoding='utf-8')
        assert ConfigLoader.load(str(path)) == DEFAULT_CONFIG

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ConfigLoader.load(str(tmp_path / 'nope.yaml'))

    def test_non_mapping(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text('- a\n- b\n', encoding='utf-8')
        with pytest.raises(ValueError):
            ConfigLoader.load(str(path))


class TestValidate:
    """Offending keys are named in the error."""

    def config(self, **sections):
        config = ConfigLoader.load(None)
        for section, values in sections.items():
            config[section].update(values)
        return config

    def test_defaults_are_valid(self):
        ConfigLoader.validate(self.config())

    @pytest.mark.parametrize('section,values,key', [
        ('convert', {'merge': 'yes'}, 'convert.merge'),
        ('convert', {'front_matter': 1}, 'convert.front_matter'),
        ('download', {'max_workers': 0}, 'download.max_workers'),
        ('download', {'max_workers': 2.5}, 'download.max_workers'),
        ('download', {'timeout': -1}, 'download.timeout'),
        ('convert', {'image_directory': 'a/b'}, 'convert.image_directory'),
        ('convert', {'static_directory': ''}, 'convert.static_directory'),
        ('convert', {'merged_filename': 'book.txt'}, 'convert.merged_filename'),
        ('convert', {'skip_ids': 'titlepage'}, 'convert.skip_ids'),
    ])
    def test_invalid_values(self, section, values, key):
        with pytest.raises(ValueError, match=key.replace('.', r'\.')):
            ConfigLoader.validate(self.config(**{section: values}))

    def test_output_directory_must_not_be_a_file(self, tmp_path):
        path = tmp_path / 'file.txt'
        path.write_text('x', encoding='utf-8')
        with pytest.raises(ValueError, match='output_directory'):
            ConfigLoader.validate(self.config(convert={'output_directory': str(path)}))


class TestMergeWithArgs:
    """CLI arguments win over file values."""

    def test_output_and_flags(self):
        merged = ConfigLoader.merge_with_args(
            ConfigLoader.load(None),
            namespace(output='out', localize=True, front_matter=True)
        )
        assert merged['convert']['output_directory'] == 'out'
        assert merged['convert']['localize'] is True
        assert merged['convert']['front_matter'] is True

    def test_bare_merge_flag(self):
        merged = ConfigLoader.merge_with_args(ConfigLoader.load(None), namespace(merge=True))
        assert merged['convert']['merge'] is True
        assert merged['convert']['merged_filename'] is None

    def test_merged_name_implies_merge(self):
        merged = ConfigLoader.merge_with_args(ConfigLoader.load(None), namespace(merged_name='book.md'))
        assert merged['convert']['merge'] is True
        assert merged['convert']['merged_filename'] == 'book.md'

    def test_logging_options(self):
        merged = ConfigLoader.merge_with_args({}, namespace(log_file='run.log', log_level='DEBUG'))
        assert merged['logging'] == {'file': 'run.log', 'level': 'DEBUG'}

    def test_original_is_not_modified(self):
        config = ConfigLoader.load(None)
        ConfigLoader.merge_with_args(config, namespace(output='elsewhere'))
        assert config['convert']['output_directory'] is None

    def test_missing_attributes_are_ignored(self):
        merged = ConfigLoader.merge_with_args(ConfigLoader.load(None), argparse.Namespace(directory='d'))
        assert merged == ConfigLoader.load(None)


class TestGetNested:
    def test_paths(self):
        config = {'a': {'b': {'c': 1}}}
        assert get_nested(config, 'a.b.c') == 1
        assert get_nested(config, 'a.x', 'default') == 'default'
        assert get_nested(config, 'a.b.c.d') is None
