"""
Unit tests for the zone supervisor set.

Tests cover:
- Decoding of every stored supervisors shape
- Idempotent add/remove
- Missing zones and concurrent zone updates
"""
import json

import pytest
from sqlalchemy.orm.exc import StaleDataError

from guardforce.error_handlers.exceptions import ResourceNotFoundException, TransientStoreException
from guardforce.services.supervisor_zones import (
    SupervisorZoneManager,
    decode_supervisors,
    encode_supervisors,
)


class TestDecodeSupervisors:
    """Tests for decode_supervisors()."""

    @pytest.mark.unit
    def test_json_array(self):
        assert decode_supervisors('["a", "b"]') == ['a', 'b']

    @pytest.mark.unit
    def test_json_object_uses_values(self):
        assert decode_supervisors('{"0": "a", "1": "b"}') == ['a', 'b']

    @pytest.mark.unit
    def test_double_encoded_string(self):
        raw = json.dumps(json.dumps(['a', 'b']))
        assert decode_supervisors(raw) == ['a', 'b']

    @pytest.mark.unit
    def test_native_list_and_dict(self):
        assert decode_supervisors(['a', 'b']) == ['a', 'b']
        assert decode_supervisors({'x': 'a', 'y': 'b'}) == ['a', 'b']

    @pytest.mark.unit
    def test_bytes(self):
        assert decode_supervisors(b'["a"]') == ['a']

    @pytest.mark.unit
    @pytest.mark.parametrize('raw', [None, '', '   ', 'not json', '{broken', '42', 'true', 7])
    def test_unusable_values_decode_to_empty(self, raw):
        assert decode_supervisors(raw) == []

    @pytest.mark.unit
    def test_dedupes_keeping_first_position(self):
        assert decode_supervisors('["b", "a", "b", "a"]') == ['b', 'a']

    @pytest.mark.unit
    def test_drops_blank_null_and_nested_objects(self):
        assert decode_supervisors('["a", "", "  ", null, {"id": "x"}, true]') == ['a']

    @pytest.mark.unit
    def test_coerces_numbers_and_flattens_nested_lists(self):
        assert decode_supervisors('[1, ["2", [3]], "1"]') == ['1', '2', '3']

    @pytest.mark.unit
    def test_encode_empty_is_null(self):
        assert encode_supervisors([]) is None
        assert encode_supervisors(['a', 'a']) == '["a"]'


class TestSupervisorZoneManager:
    """Tests for SupervisorZoneManager add/remove."""

    @pytest.fixture
    def manager(self, db_session, models):
        return SupervisorZoneManager(db_session, models)

    @pytest.mark.unit
    def test_add_to_empty_zone(self, manager, zone_factory, db_session):
        zone = zone_factory()

        result = manager.add_supervisor('sup-1', zone.id)

        assert result.changed is True
        assert result.message == SupervisorZoneManager.MSG_ADDED
        assert result.supervisors == ['sup-1']
        db_session.refresh(zone)
        assert zone.supervisors == '["sup-1"]'

    @pytest.mark.unit
    def test_add_is_idempotent(self, manager, zone_factory):
        zone = zone_factory()
        manager.add_supervisor('sup-1', zone.id)

        result = manager.add_supervisor('sup-1', zone.id)

        assert result.changed is False
        assert result.message == SupervisorZoneManager.MSG_ALREADY_ASSIGNED
        assert manager.get_supervisors(zone.id) == ['sup-1']

    @pytest.mark.unit
    def test_add_appends_in_order(self, manager, zone_factory):
        zone = zone_factory(supervisors='["sup-1"]')

        manager.add_supervisor('sup-2', zone.id)

        assert manager.get_supervisors(zone.id) == ['sup-1', 'sup-2']

    @pytest.mark.unit
    @pytest.mark.parametrize('stored', ['{"0": "sup-1"}', json.dumps('["sup-1"]'), '["sup-1", "sup-1", ""]'])
    def test_add_normalizes_legacy_shapes(self, manager, zone_factory, db_session, stored):
        zone = zone_factory(supervisors=stored)

        result = manager.add_supervisor('sup-2', zone.id)

        assert result.supervisors == ['sup-1', 'sup-2']
        db_session.refresh(zone)
        assert json.loads(zone.supervisors) == ['sup-1', 'sup-2']

    @pytest.mark.unit
    @pytest.mark.parametrize('stored', [None, 'garbage', '{not json'])
    def test_add_replaces_unusable_values(self, manager, zone_factory, stored):
        zone = zone_factory(supervisors=stored)

        result = manager.add_supervisor('sup-1', zone.id)

        assert result.supervisors == ['sup-1']

    @pytest.mark.unit
    def test_remove_present(self, manager, zone_factory, db_session):
        zone = zone_factory(supervisors='["sup-1", "sup-2"]')

        result = manager.remove_supervisor('sup-1', zone.id)

        assert result.changed is True
        assert result.message == SupervisorZoneManager.MSG_REMOVED
        assert manager.get_supervisors(zone.id) == ['sup-2']

    @pytest.mark.unit
    def test_remove_last_stores_null(self, manager, zone_factory, db_session):
        zone = zone_factory(supervisors='["sup-1"]')

        manager.remove_supervisor('sup-1', zone.id)

        db_session.refresh(zone)
        assert zone.supervisors is None

    @pytest.mark.unit
    def test_remove_absent_is_noop(self, manager, zone_factory):
        zone = zone_factory(supervisors='["sup-1"]')

        result = manager.remove_supervisor('sup-9', zone.id)

        assert result.changed is False
        assert result.message == SupervisorZoneManager.MSG_NOT_PRESENT
        assert result.supervisors == ['sup-1']

    @pytest.mark.unit
    @pytest.mark.parametrize('stored, changed, expected', [
        ('{"0": "sup-1", "1": "sup-2"}', True, ['sup-2']),
        (json.dumps('["sup-1", "sup-2"]'), True, ['sup-2']),
        ('["sup-1", "sup-2", "sup-1"]', True, ['sup-2']),
        (None, False, []),
        ('{not json', False, []),
    ])
    def test_remove_normalizes_legacy_shapes(self, manager, zone_factory, db_session, stored, changed, expected):
        zone = zone_factory(supervisors=stored)

        result = manager.remove_supervisor('sup-1', zone.id)

        assert result.changed is changed
        assert result.supervisors == expected
        assert manager.get_supervisors(zone.id) == expected
        if changed:
            db_session.refresh(zone)
            assert json.loads(zone.supervisors) == expected

    @pytest.mark.unit
    def test_add_twice_then_remove_twice(self, manager, zone_factory, db_session):
        zone = zone_factory()

        steps = [
            manager.add_supervisor('sup-1', zone.id),
            manager.add_supervisor('sup-1', zone.id),
            manager.remove_supervisor('sup-1', zone.id),
            manager.remove_supervisor('sup-1', zone.id),
        ]

        assert [(r.changed, r.supervisors) for r in steps] == [
            (True, ['sup-1']),
            (False, ['sup-1']),
            (True, []),
            (False, []),
        ]
        assert [r.message for r in steps] == [
            SupervisorZoneManager.MSG_ADDED,
            SupervisorZoneManager.MSG_ALREADY_ASSIGNED,
            SupervisorZoneManager.MSG_REMOVED,
            SupervisorZoneManager.MSG_NOT_PRESENT,
        ]
        db_session.refresh(zone)
        assert zone.supervisors is None

    @pytest.mark.unit
    def test_unknown_zone(self, manager, db):
        with pytest.raises(ResourceNotFoundException):
            manager.add_supervisor('sup-1', 'missing-zone')
        with pytest.raises(ResourceNotFoundException):
            manager.remove_supervisor('sup-1', 'missing-zone')

    @pytest.mark.unit
    def test_commit_false_only_stages(self, manager, zone_factory, db_session):
        zone = zone_factory()

        result = manager.add_supervisor('sup-1', zone.id, commit=False)
        db_session.rollback()

        assert result.changed is True
        assert manager.get_supervisors(zone.id) == []

    @pytest.mark.unit
    def test_stale_zone_is_retried(self, manager, zone_factory, db_session, monkeypatch):
        zone = zone_factory()
        session = db_session()
        real_commit = session.commit
        calls = {'count': 0}

        def flaky_commit():
            calls['count'] += 1
            if calls['count'] == 1:
                raise StaleDataError('zone changed')
            return real_commit()

        monkeypatch.setattr(session, 'commit', flaky_commit)

        result = manager.add_supervisor('sup-1', zone.id)

        assert calls['count'] == 2
        assert result.changed is True
        assert manager.get_supervisors(zone.id) == ['sup-1']

    @pytest.mark.unit
    def test_gives_up_after_max_retries(self, db_session, models, zone_factory, monkeypatch):
        zone = zone_factory()
        manager = SupervisorZoneManager(db_session, models, max_retries=2)

        def always_stale():
            raise StaleDataError('zone changed')

        monkeypatch.setattr(db_session(), 'commit', always_stale)

        with pytest.raises(TransientStoreException):
            manager.add_supervisor('sup-1', zone.id)

    @pytest.mark.unit
    def test_version_bumps_on_update(self, manager, zone_factory, db_session):
        zone = zone_factory()
        before = zone.version_id

        manager.add_supervisor('sup-1', zone.id)

        db_session.refresh(zone)
        assert zone.version_id == before + 1
