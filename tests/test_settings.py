"""Tests for caselsp.settings: normalization and the project config file."""
from __future__ import annotations

import pytest

from caselsp.settings import Settings, read_project_config


class TestFromClient:
    def test_single_steps_pattern_becomes_one_element_tuple(self):
        s = Settings.from_client({'cucumberautocomplete': {'steps': 'features/**/*.steps.js'}})
        assert s.steps == ('features/**/*.steps.js',)

    def test_steps_list_is_kept_in_order(self):
        s = Settings.from_client({'cucumberautocomplete': {'steps': ['a/*.js', 'b/*.js']}})
        assert s.steps == ('a/*.js', 'b/*.js')

    def test_missing_section_gives_defaults(self):
        s = Settings.from_client({})
        assert s.steps == ()
        assert dict(s.pages) == {}
        assert s.on_type_format is False
        assert not s.handles_steps
        assert not s.handles_pages

    def test_non_mapping_pages_is_ignored(self):
        s = Settings.from_client({'cucumberautocomplete': {'pages': ['x']}})
        assert dict(s.pages) == {}

    def test_pages_mapping(self):
        s = Settings.from_client({'cucumberautocomplete': {'pages': {'login': 'pages/login.js'}}})
        assert dict(s.pages) == {'login': 'pages/login.js'}
        assert s.handles_pages

    def test_section_may_be_passed_directly(self):
        s = Settings.from_client({'steps': 'x/*.js', 'onTypeFormat': True})
        assert s.steps == ('x/*.js',)
        assert s.on_type_format is True

    def test_none_payload(self):
        assert Settings.from_client(None) == Settings.from_client({})

    def test_settings_are_immutable(self):
        s = Settings.from_client({'pages': {'login': 'pages/login.js'}})
        with pytest.raises(Exception):
            s.steps = ('other',)
        with pytest.raises(TypeError):
            s.pages['home'] = 'pages/home.js'

    def test_custom_parameters(self):
        s = Settings.from_client({'customParameters': [
            {'parameter': '{user}', 'value': '(alice|bob)'},
            {'parameter': 'incomplete'},
        ]})
        assert s.custom_parameters == (('{user}', '(alice|bob)'),)

    def test_defaults_are_overridden_key_by_key(self):
        s = Settings.from_client(
            {'cucumberautocomplete': {'steps': 'client/*.js'}},
            defaults={'steps': 'project/*.js', 'onTypeFormat': True},
        )
        assert s.steps == ('client/*.js',)
        assert s.on_type_format is True


class TestDefaults:
    def test_mapping_fields_default_to_empty_read_only_mappings(self):
        s = Settings()
        assert dict(s.pages) == {}
        assert dict(s.format_conf_override) == {}
        with pytest.raises(TypeError):
            s.pages['x'] = 'y'

    def test_instances_compare_equal(self):
        assert Settings() == Settings(steps=())
        assert not Settings().handles_pages


class TestProjectConfig:
    def test_no_root(self):
        assert read_project_config(None) == {}

    def test_missing_file(self, tmp_path):
        assert read_project_config(str(tmp_path)) == {}

    def test_reads_section(self, tmp_path):
        (tmp_path / '.caselsp.toml').write_text(
            '[cucumberautocomplete]\nsteps = ["steps/*.js"]\nonTypeFormat = true\n'
        )
        assert read_project_config(str(tmp_path)) == {
            'steps': ['steps/*.js'], 'onTypeFormat': True,
        }

    def test_top_level_table(self, tmp_path):
        (tmp_path / '.caselsp.toml').write_text('steps = "steps/*.js"\n')
        assert read_project_config(str(tmp_path)) == {'steps': 'steps/*.js'}

    def test_broken_file_is_ignored(self, tmp_path):
        (tmp_path / '.caselsp.toml').write_text('steps = [\n')
        assert read_project_config(str(tmp_path)) == {}
