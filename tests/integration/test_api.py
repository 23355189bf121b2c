"""
Integration tests for API endpoints.

Tests cover:
- Health check endpoints
- Assignment request, response and bulk endpoints
- Assignment detail and paginated listing
- Zone supervisor and staffing endpoints
- Notification inbox
- Event time-window endpoints
- Caller identity and role checks
"""
import json
from datetime import datetime

import pytest

from guardforce.services import NotificationService


def post_json(client, url, payload, headers):
    return client.post(url, data=json.dumps(payload), content_type='application/json', headers=headers)


def put_json(client, url, payload, headers):
    return client.put(url, data=json.dumps(payload), content_type='application/json', headers=headers)


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    @pytest.mark.integration
    def test_ping(self, client):
        response = client.get('/health/ping')
        assert response.status_code == 200
        assert response.get_json()['message'] == 'pong'

    @pytest.mark.integration
    def test_ready(self, client):
        response = client.get('/health/ready')
        assert response.status_code == 200
        data = response.get_json()
        assert data['status'] == 'ready'
        assert data['checks']['database'] is True

    @pytest.mark.integration
    def test_status(self, client):
        response = client.get('/health/status')
        assert response.status_code == 200
        data = response.get_json()
        assert data['status'] == 'operational'
        assert data['application']['supervisor_release_policy'] == 'retain'
        assert data['database']['type'] == 'sqlite'


class TestCallerIdentity:
    """Tests for the X-User-Id caller resolution."""

    @pytest.mark.integration
    def test_missing_header(self, client):
        response = client.get('/api/assignments')
        assert response.status_code == 401
        assert response.get_json()['error'] == 'AuthenticationError'

    @pytest.mark.integration
    def test_unknown_user(self, client):
        response = client.get('/api/assignments', headers={'X-User-Id': 'nobody'})
        assert response.status_code == 401

    @pytest.mark.integration
    def test_inactive_caller(self, client, user_factory, auth_headers):
        suspended = user_factory(role='admin', status='suspended')
        response = client.get('/api/assignments', headers=auth_headers(suspended))
        assert response.status_code == 401

    @pytest.mark.integration
    def test_agent_cannot_manage(self, client, user_factory, auth_headers):
        agent = user_factory()
        response = client.get('/api/assignments', headers=auth_headers(agent))
        assert response.status_code == 403
        assert response.get_json()['error'] == 'AuthorizationError'

    @pytest.mark.integration
    def test_unknown_route_is_json(self, client):
        response = client.get('/api/nothing-here')
        assert response.status_code == 404
        assert response.get_json()['success'] is False


class TestAssignmentEndpoints:
    """Tests for /api/assignments."""

    @pytest.mark.integration
    def test_create_then_conflict(self, client, admin_user, user_factory, zone_factory, auth_headers):
        agent = user_factory()
        zone = zone_factory(name='Porte B')
        payload = {'agent_id': agent.id, 'event_id': zone.event_id, 'zone_id': zone.id}

        created = post_json(client, '/api/assignments', payload, auth_headers(admin_user))
        assert created.status_code == 201
        body = created.get_json()
        assert body['success'] is True
        assert body['action'] == 'created'
        assert body['assignment']['status'] == 'pending'
        assert body['assignment']['status_label'] == 'en attente'
        assert body['notification_sent'] is True

        conflict = post_json(client, '/api/assignments', payload, auth_headers(admin_user))
        assert conflict.status_code == 409
        data = conflict.get_json()
        assert data['outcome'] == 'rejected'
        assert data['existing_assignment_id'] == body['assignment']['id']
        assert 'dans la zone "Porte B"' in data['message']

    @pytest.mark.integration
    def test_reassign_returns_200(self, client, admin_user, assignment_factory, auth_headers):
        existing = assignment_factory(status='declined')
        payload = {'agent_id': existing.agent_id, 'event_id': existing.event_id}

        response = post_json(client, '/api/assignments', payload, auth_headers(admin_user))

        assert response.status_code == 200
        body = response.get_json()
        assert body['action'] == 'reassigned'
        assert body['assignment']['id'] == existing.id

    @pytest.mark.integration
    def test_missing_fields(self, client, admin_user, auth_headers):
        response = post_json(client, '/api/assignments', {'agent_id': 'x'}, auth_headers(admin_user))
        assert response.status_code == 400
        assert response.get_json()['missing_fields'] == ['event_id']

    @pytest.mark.integration
    def test_invalid_role(self, client, admin_user, user_factory, event_factory, auth_headers):
        agent = user_factory()
        event = event_factory()
        payload = {'agent_id': agent.id, 'event_id': event.id, 'role': 'captain'}

        response = post_json(client, '/api/assignments', payload, auth_headers(admin_user))

        assert response.status_code == 400

    @pytest.mark.integration
    def test_supervisor_assignment_updates_zone(self, client, admin_user, user_factory, zone_factory,
                                                auth_headers):
        supervisor = user_factory(role='supervisor')
        zone = zone_factory()
        payload = {'agent_id': supervisor.id, 'event_id': zone.event_id, 'zone_id': zone.id, 'role': 'supervisor'}

        response = post_json(client, '/api/assignments', payload, auth_headers(admin_user))
        assert response.status_code == 201
        assert response.get_json()['zone_supervisors'] == [supervisor.id]

        listed = client.get(f'/api/zones/{zone.id}/supervisors', headers=auth_headers(supervisor))
        assert listed.get_json()['supervisors'] == [supervisor.id]

    @pytest.mark.integration
    def test_bulk_create(self, client, admin_user, user_factory, event_factory, auth_headers):
        event = event_factory()
        agents = [user_factory(), user_factory()]
        payload = {'event_id': event.id, 'agent_ids': [a.id for a in agents] + ['ghost']}

        response = post_json(client, '/api/assignments/bulk', payload, auth_headers(admin_user))

        assert response.status_code == 201
        data = response.get_json()['data']
        assert len(data['created']) == 2
        assert data['failed'] == [{'agent_id': 'ghost', 'reason': 'Utilisateur non trouvé', 'error': 'NotFound'}]

    @pytest.mark.integration
    def test_bulk_create_requires_agents(self, client, admin_user, event_factory, auth_headers):
        event = event_factory()
        response = post_json(client, '/api/assignments/bulk', {'event_id': event.id, 'agent_ids': []},
                             auth_headers(admin_user))
        assert response.status_code == 400

    @pytest.mark.integration
    def test_bulk_confirm(self, client, user_factory, event_factory, assignment_factory, auth_headers):
        manager_user = user_factory(role='supervisor')
        event = event_factory()
        assignment_factory(event=event)
        assignment_factory(event=event, role='backup')

        response = post_json(client, '/api/assignments/bulk-confirm',
                             {'event_id': event.id, 'confirm_supervisors': False}, auth_headers(manager_user))

        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['confirmed_count'] == 2
        assert data['notification_failures'] == []

    @pytest.mark.integration
    def test_bulk_confirm_nothing_pending(self, client, admin_user, event_factory, auth_headers):
        event = event_factory()
        response = post_json(client, '/api/assignments/bulk-confirm', {'event_id': event.id},
                             auth_headers(admin_user))
        assert response.status_code == 404

    @pytest.mark.integration
    def test_bulk_confirm_both_flags_off(self, client, admin_user, event_factory, auth_headers):
        event = event_factory()
        payload = {'event_id': event.id, 'confirm_agents': False, 'confirm_supervisors': False}
        response = post_json(client, '/api/assignments/bulk-confirm', payload, auth_headers(admin_user))
        assert response.status_code == 400

    @pytest.mark.integration
    def test_agent_responds(self, client, assignment_factory, user_factory, auth_headers):
        assignment = assignment_factory()
        agent = assignment.agent

        response = post_json(client, f'/api/assignments/{assignment.id}/respond',
                             {'response': 'confirmed'}, auth_headers(agent))
        assert response.status_code == 200
        assert response.get_json()['assignment']['status'] == 'confirmed'

        again = post_json(client, f'/api/assignments/{assignment.id}/respond',
                          {'response': 'declined'}, auth_headers(agent))
        assert again.status_code == 409

        other = user_factory()
        foreign = post_json(client, f'/api/assignments/{assignment.id}/respond',
                            {'response': 'declined'}, auth_headers(other))
        assert foreign.status_code == 404

    @pytest.mark.integration
    def test_update_and_delete(self, client, admin_user, assignment_factory, auth_headers):
        assignment = assignment_factory(notes='gate 1')

        updated = put_json(client, f'/api/assignments/{assignment.id}',
                           {'role': 'backup', 'notes': None}, auth_headers(admin_user))
        assert updated.status_code == 200
        body = updated.get_json()['assignment']
        assert body['role'] == 'backup'
        assert body['notes'] is None

        deleted = client.delete(f'/api/assignments/{assignment.id}', headers=auth_headers(admin_user))
        assert deleted.status_code == 200

        listed = client.get(f'/api/assignments?event_id={assignment.event_id}', headers=auth_headers(admin_user))
        assert listed.get_json()['count'] == 0

        missing = client.delete(f'/api/assignments/{assignment.id}', headers=auth_headers(admin_user))
        assert missing.status_code == 404

    @pytest.mark.integration
    def test_discard_agent_assignments_is_admin_only(self, client, admin_user, user_factory,
                                                     assignment_factory, auth_headers):
        agent = user_factory()
        assignment_factory(agent=agent)
        assignment_factory(agent=agent)
        supervisor = user_factory(role='supervisor')

        forbidden = client.delete(f'/api/assignments/agent/{agent.id}', headers=auth_headers(supervisor))
        assert forbidden.status_code == 403

        response = client.delete(f'/api/assignments/agent/{agent.id}', headers=auth_headers(admin_user))
        assert response.status_code == 200
        assert response.get_json()['removed'] == 2

    @pytest.mark.integration
    def test_list_filters(self, client, admin_user, event_factory, assignment_factory, auth_headers):
        event = event_factory()
        assignment_factory(event=event, status='confirmed')
        assignment_factory(event=event)

        response = client.get(f'/api/assignments?event_id={event.id}&status=confirmed',
                              headers=auth_headers(admin_user))

        assert response.status_code == 200
        assert response.get_json()['count'] == 1

        bad = client.get('/api/assignments?status=lost', headers=auth_headers(admin_user))
        assert bad.status_code == 400

    @pytest.mark.integration
    def test_non_string_notes_are_rejected(self, client, admin_user, user_factory, event_factory,
                                           assignment_factory, auth_headers):
        agent = user_factory()
        event = event_factory()
        payload = {'agent_id': agent.id, 'event_id': event.id, 'notes': {'x': 1}}

        created = post_json(client, '/api/assignments', payload, auth_headers(admin_user))
        assert created.status_code == 400
        assert created.get_json()['error'] == 'ValidationError'
        assert created.get_json()['field'] == 'notes'

        existing = assignment_factory(notes='gate 1')
        updated = put_json(client, f'/api/assignments/{existing.id}', {'notes': ['a', 'b']},
                           auth_headers(admin_user))
        assert updated.status_code == 400
        assert updated.get_json()['error'] == 'ValidationError'

        unchanged = client.get(f'/api/assignments/{existing.id}', headers=auth_headers(admin_user))
        assert unchanged.get_json()['assignment']['notes'] == 'gate 1'

    @pytest.mark.integration
    def test_get_assignment_with_history(self, client, admin_user, user_factory, event_factory, auth_headers):
        agent = user_factory()
        payload = {'agent_id': agent.id, 'event_id': event_factory().id, 'notes': 'Porte A'}
        assignment_id = post_json(client, '/api/assignments', payload,
                                  auth_headers(admin_user)).get_json()['assignment']['id']

        response = client.get(f'/api/assignments/{assignment_id}', headers=auth_headers(admin_user))

        assert response.status_code == 200
        data = response.get_json()['assignment']
        assert data['id'] == assignment_id
        assert data['notes'] == 'Porte A'
        assert data['assigned_by_name'] == admin_user.full_name
        assert [entry['action'] for entry in data['history']] == ['CREATE_ASSIGNMENT']

    @pytest.mark.integration
    def test_get_assignment_visibility(self, client, user_factory, assignment_factory, auth_headers):
        assignment = assignment_factory()
        url = f'/api/assignments/{assignment.id}'

        own = client.get(url, headers=auth_headers(assignment.agent))
        assert own.status_code == 200
        assert 'history' not in own.get_json()['assignment']

        stranger = client.get(url, headers=auth_headers(user_factory()))
        assert stranger.status_code == 404

    @pytest.mark.integration
    def test_get_deleted_assignment(self, client, admin_user, assignment_factory, auth_headers):
        assignment = assignment_factory(deleted_at=datetime(2024, 5, 1))

        response = client.get(f'/api/assignments/{assignment.id}', headers=auth_headers(admin_user))

        assert response.status_code == 404
        assert response.get_json()['message'] == 'Affectation non trouvée'

    @pytest.mark.integration
    def test_list_pagination(self, client, admin_user, event_factory, assignment_factory, auth_headers):
        event = event_factory()
        for _ in range(3):
            assignment_factory(event=event)

        first = client.get(f'/api/assignments?event_id={event.id}&page=1&limit=2',
                           headers=auth_headers(admin_user)).get_json()
        second = client.get(f'/api/assignments?event_id={event.id}&page=2&limit=2',
                            headers=auth_headers(admin_user)).get_json()

        assert first['count'] == 2
        assert first['pagination'] == {'page': 1, 'limit': 2, 'total': 3, 'pages': 2}
        assert second['count'] == 1
        ids = {a['id'] for a in first['assignments']} | {a['id'] for a in second['assignments']}
        assert len(ids) == 3

        capped = client.get('/api/assignments?limit=1000', headers=auth_headers(admin_user)).get_json()
        assert capped['pagination']['limit'] == 100

    @pytest.mark.integration
    @pytest.mark.parametrize('query', ['page=0', 'limit=abc', 'sort_by=password', 'sort_order=up'])
    def test_list_rejects_bad_paging(self, client, admin_user, auth_headers, query):
        response = client.get(f'/api/assignments?{query}', headers=auth_headers(admin_user))
        assert response.status_code == 400

    @pytest.mark.integration
    def test_my_assignments_upcoming(self, client, user_factory, event_factory, assignment_factory,
                                     auth_headers):
        agent = user_factory()
        past = event_factory(start_date=datetime(2020, 1, 1), end_date=datetime(2020, 1, 1))
        future = event_factory(start_date=datetime(2099, 1, 1), end_date=datetime(2099, 1, 1))
        assignment_factory(agent=agent, event=past)
        keep = assignment_factory(agent=agent, event=future)

        everything = client.get('/api/assignments/mine', headers=auth_headers(agent))
        upcoming = client.get('/api/assignments/mine?upcoming=true', headers=auth_headers(agent))

        assert everything.get_json()['count'] == 2
        assert [a['id'] for a in upcoming.get_json()['assignments']] == [keep.id]


class TestZoneEndpoints:
    """Tests for /api/zones/<zone_id>/supervisors."""

    @pytest.mark.integration
    def test_add_and_remove(self, client, admin_user, zone_factory, auth_headers):
        zone = zone_factory()
        url = f'/api/zones/{zone.id}/supervisors'

        added = post_json(client, url, {'supervisor_id': 'sup-1'}, auth_headers(admin_user))
        assert added.status_code == 200
        assert added.get_json()['changed'] is True

        repeated = post_json(client, url, {'supervisor_id': 'sup-1'}, auth_headers(admin_user))
        assert repeated.get_json()['changed'] is False
        assert repeated.get_json()['message'] == 'Supervisor already assigned to this zone'

        removed = client.delete(f'{url}/sup-1', headers=auth_headers(admin_user))
        assert removed.get_json()['changed'] is True
        assert removed.get_json()['supervisors'] == []

        absent = client.delete(f'{url}/sup-1', headers=auth_headers(admin_user))
        assert absent.status_code == 200
        assert absent.get_json()['changed'] is False

    @pytest.mark.integration
    def test_unknown_zone(self, client, admin_user, auth_headers):
        response = post_json(client, '/api/zones/missing/supervisors', {'supervisor_id': 'sup-1'},
                             auth_headers(admin_user))
        assert response.status_code == 404

    @pytest.mark.integration
    def test_legacy_value_is_readable(self, client, user_factory, zone_factory, auth_headers):
        zone = zone_factory(supervisors='{"0": "sup-1", "1": "sup-1"}')
        agent = user_factory()

        response = client.get(f'/api/zones/{zone.id}/supervisors', headers=auth_headers(agent))

        assert response.get_json()['supervisors'] == ['sup-1']

    @pytest.mark.integration
    def test_event_zone_stats(self, client, admin_user, user_factory, event_factory, zone_factory,
                              assignment_factory, auth_headers):
        event = event_factory()
        gate = zone_factory(event=event, name='Porte A', required_agents=1, required_supervisors=0)
        zone_factory(event=event, name='Tribune', required_agents=2, required_supervisors=1)
        assignment_factory(zone=gate, status='confirmed')
        assignment_factory(zone=gate, status='cancelled')

        response = client.get(f'/api/zones/event/{event.id}/stats', headers=auth_headers(admin_user))

        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['total_zones'] == 2
        assert data['filled_zones'] == 1
        assert data['underfilled_zones'] == 1
        assert data['total_assigned_agents'] == 1
        porte = next(z for z in data['zones'] if z['name'] == 'Porte A')
        assert porte['is_filled'] is True
        assert porte['confirmed_count'] == 1
        assert porte['fill_percentage'] == 100

        agent_view = client.get(f'/api/zones/event/{event.id}/stats', headers=auth_headers(user_factory()))
        assert agent_view.status_code == 403

    @pytest.mark.integration
    def test_event_zone_stats_unknown_event(self, client, admin_user, auth_headers):
        response = client.get('/api/zones/event/missing/stats', headers=auth_headers(admin_user))
        assert response.status_code == 404
        assert response.get_json()['message'] == 'Événement non trouvé'


class TestEventEndpoints:
    """Tests for /api/events."""

    @pytest.mark.integration
    def test_list_with_computed_status(self, client, user_factory, event_factory, auth_headers, models, db_session):
        agent = user_factory()
        finished = event_factory(start_date=datetime(2024, 5, 1), end_date=datetime(2024, 5, 1))
        running = event_factory()

        response = client.get('/api/events?at=2024-06-01T07:00:00', headers=auth_headers(agent))

        assert response.status_code == 200
        statuses = {e['id']: e['computed_status'] for e in response.get_json()['events']}
        assert statuses == {finished.id: 'completed', running.id: 'active'}
        db_session.expire_all()
        assert db_session.get(models['Event'], finished.id).status == 'completed'

    @pytest.mark.integration
    def test_visible_only(self, client, user_factory, event_factory, auth_headers):
        agent = user_factory()
        event_factory(start_date=datetime(2024, 5, 1), end_date=datetime(2024, 5, 1))
        running = event_factory()

        response = client.get('/api/events?at=2024-06-01T19:30:00&visible_only=true', headers=auth_headers(agent))

        assert [e['id'] for e in response.get_json()['events']] == [running.id]

    @pytest.mark.integration
    def test_event_status(self, client, user_factory, event_factory, auth_headers):
        agent = user_factory()
        event = event_factory()

        response = client.get(f'/api/events/{event.id}/status?at=2024-06-01T05:30:00', headers=auth_headers(agent))

        data = response.get_json()
        assert data['status'] == 'scheduled'
        assert data['within_check_in_window'] is False
        assert data['check_out_moment'] == '2024-06-01T18:00:00'

    @pytest.mark.integration
    def test_event_status_not_found(self, client, user_factory, auth_headers):
        agent = user_factory()
        response = client.get('/api/events/missing/status', headers=auth_headers(agent))
        assert response.status_code == 404

    @pytest.mark.integration
    def test_bad_at_parameter(self, client, user_factory, auth_headers):
        agent = user_factory()
        response = client.get('/api/events?at=tomorrow', headers=auth_headers(agent))
        assert response.status_code == 400


class TestNotificationEndpoints:
    """Tests for /api/notifications."""

    @pytest.mark.integration
    def test_assignment_lands_in_agent_inbox(self, client, admin_user, user_factory, event_factory,
                                             auth_headers):
        agent = user_factory()
        payload = {'agent_id': agent.id, 'event_id': event_factory(name='Derby').id}
        assignment_id = post_json(client, '/api/assignments', payload,
                                  auth_headers(admin_user)).get_json()['assignment']['id']

        inbox = client.get('/api/notifications/unread', headers=auth_headers(agent))

        assert inbox.status_code == 200
        body = inbox.get_json()
        assert body['count'] == 1
        notification = body['notifications'][0]
        assert notification['assignment_id'] == assignment_id
        assert notification['title'] == 'Nouvelle Affectation'
        assert '"Derby"' in notification['message']

    @pytest.mark.integration
    def test_mark_read(self, client, user_factory, db_session, models, auth_headers):
        agent = user_factory()
        other = user_factory()
        notification = NotificationService(db_session, models).notify(agent.id, 'general', 'Rappel', 'Briefing')
        url = f'/api/notifications/{notification.id}/read'

        forbidden = client.post(url, headers=auth_headers(other))
        assert forbidden.status_code == 404

        marked = client.post(url, headers=auth_headers(agent))
        assert marked.status_code == 200
        assert marked.get_json()['notification']['is_read'] is True

        inbox = client.get('/api/notifications/unread', headers=auth_headers(agent))
        assert inbox.get_json()['count'] == 0

    @pytest.mark.integration
    def test_inbox_requires_caller(self, client):
        assert client.get('/api/notifications/unread').status_code == 401
