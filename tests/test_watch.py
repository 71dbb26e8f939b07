"""Tests for caselsp.watch: watch handles per owner."""
from __future__ import annotations

import pytest

from caselsp.watch import WatchRegistry


@pytest.fixture
def root(tmp_path):
    (tmp_path / 'steps').mkdir()
    (tmp_path / 'steps' / 'a.js').write_text('')
    (tmp_path / 'steps' / 'b.js').write_text('')
    (tmp_path / 'pages').mkdir()
    (tmp_path / 'pages' / 'p.js').write_text('')
    return tmp_path


@pytest.fixture
def calls():
    return {'register': [], 'unregister': []}


@pytest.fixture
def registry(root, calls):
    return WatchRegistry(
        str(root),
        register=calls['register'].append,
        unregister=calls['unregister'].append,
    )


class TestWatch:
    def test_one_handle_per_pattern(self, registry, calls, root):
        handles = registry.watch('steps', ['steps/*.js'])
        assert len(handles) == 1
        assert handles[0].files == {(root / 'steps' / 'a.js').resolve(), (root / 'steps' / 'b.js').resolve()}
        assert calls['register'] == handles

    def test_rewatch_unregisters_previous_handles(self, registry, calls):
        first = registry.watch('steps', ['steps/*.js'])
        second = registry.watch('steps', ['steps/*.js'])
        assert calls['unregister'] == first
        assert registry.handles('steps') == second
        assert first[0].registration_id != second[0].registration_id

    def test_repeated_configuration_does_not_accumulate(self, registry):
        for _ in range(5):
            registry.watch('steps', ['steps/*.js', 'more/*.py'])
        assert len(registry.handles()) == 2

    def test_owners_are_independent(self, registry, calls):
        registry.watch('steps', ['steps/*.js'])
        registry.watch('pages', ['pages/*.js'])
        registry.unwatch('pages')
        assert [h.owner for h in registry.handles()] == ['steps']
        assert [h.owner for h in calls['unregister']] == ['pages']

    def test_unwatch_unknown_owner(self, registry, calls):
        registry.unwatch('steps')
        assert calls['unregister'] == []


class TestOwnersOf:
    def test_known_file(self, registry, root):
        registry.watch('steps', ['steps/*.js'])
        registry.watch('pages', ['pages/*.js'])
        assert registry.owners_of(root / 'steps' / 'a.js') == {'steps'}
        assert registry.owners_of(str(root / 'pages' / 'p.js')) == {'pages'}

    def test_new_file_matching_pattern(self, registry, root):
        registry.watch('steps', ['steps/*.js'])
        (root / 'steps' / 'created_later.js').write_text('')
        assert registry.owners_of(root / 'steps' / 'created_later.js') == {'steps'}

    def test_unrelated_file(self, registry, root):
        registry.watch('steps', ['steps/*.js'])
        assert registry.owners_of(root / 'features' / 'x.feature') == set()

    def test_after_unwatch(self, registry, root):
        registry.watch('steps', ['steps/*.js'])
        registry.unwatch('steps')
        assert registry.owners_of(root / 'steps' / 'a.js') == set()

    def test_deleted_file_is_still_owned(self, registry, root):
        registry.watch('steps', ['steps/*.js'])
        (root / 'steps' / 'a.js').unlink()
        assert registry.owners_of(root / 'steps' / 'a.js') == {'steps'}

    def test_recursive_pattern_covers_new_top_level_file(self, registry, root):
        (root / 'features' / 'nested').mkdir(parents=True)
        (root / 'features' / 'nested' / 'a.steps.js').write_text('')
        registry.watch('steps', ['features/**/*.steps.js'])
        created = root / 'features' / 'b.steps.js'
        created.write_text('')
        assert registry.owners_of(created) == {'steps'}

    def test_recursive_pattern_covers_new_nested_file(self, registry, root):
        registry.watch('steps', ['features/**/*.steps.js'])
        (root / 'features' / 'deep' / 'er').mkdir(parents=True)
        created = root / 'features' / 'deep' / 'er' / 'c.steps.js'
        created.write_text('')
        assert registry.owners_of(created) == {'steps'}

    def test_single_star_does_not_cross_directories(self, registry, root):
        registry.watch('steps', ['steps/*.js'])
        (root / 'steps' / 'sub').mkdir()
        nested = root / 'steps' / 'sub' / 'x.js'
        nested.write_text('')
        assert registry.owners_of(nested) == set()
