"""
Integration tests for API routes.
Tests the users, realms, schemas and events blueprints end to end.
"""
import json

import pytest

REPORT_URL = '/api/v1/events/2024casd/matches/qm1/teams/frc254/reports'
COMMENT_URL = '/api/v1/events/2024casd/matches/qm1/teams/frc254/comments'


def report_body(**overrides):
    body = {
        'autoName': 'amp side',
        'data': {
            'auto': [{'statName': 'Leave', 'attempted': True, 'succeeded': True}],
            'teleop': [{'statName': 'Speaker', 'attempts': 10, 'successes': 7}],
        },
    }
    body.update(overrides)
    return body


class TestHealthEndpoint:
    """Tests for /health endpoint."""

    def test_health_check(self, client, db_session):
        response = client.get('/health')
        assert response.status_code == 200

        data = json.loads(response.data)
        assert data['status'] == 'healthy'
        assert data['notifications'] == 'disabled'


class TestAuthenticate:
    """Tests for POST /api/v1/authenticate."""

    def test_valid_credentials(self, client, users):
        response = client.post('/api/v1/authenticate',
                               json={'username': 'plainuser', 'password': 'password123'})
        assert response.status_code == 200
        token = json.loads(response.data)['jwt']

        me = client.get(f"/api/v1/users/{users['plain']}",
                        headers={'Authorization': f'Bearer {token}'})
        assert me.status_code == 200

    def test_wrong_password(self, client, users):
        response = client.post('/api/v1/authenticate',
                               json={'username': 'plainuser', 'password': 'wrongpassword'})
        assert response.status_code == 401
        assert json.loads(response.data)['kind'] == 'unauthenticated'

    def test_unknown_user(self, client, users):
        response = client.post('/api/v1/authenticate',
                               json={'username': 'ghostuser', 'password': 'password123'})
        assert response.status_code == 401

    def test_invalid_body(self, client, db_session):
        response = client.post('/api/v1/authenticate', json={'username': 'abc'})
        assert response.status_code == 422

    def test_garbage_token(self, client, users):
        response = client.get('/api/v1/users', headers={'Authorization': 'Bearer not.a.token'})
        assert response.status_code == 401
        assert json.loads(response.data)['reason'] == 'bad_token'


class TestCreateUser:
    """Tests for POST /api/v1/users."""

    def new_user(self, realm_id, username='newscout', **roles):
        return {
            'username': username,
            'password': 'supersecret',
            'realmId': realm_id,
            'firstName': 'New',
            'lastName': 'Scout',
            'roles': roles,
        }

    def test_anonymous_registration_drops_roles(self, client, realms):
        response = client.post('/api/v1/users', json=self.new_user(
            realms['private'], isSuperAdmin=True, isAdmin=True, isVerified=True))

        assert response.status_code == 201
        data = json.loads(response.data)
        assert data['roles'] == {'isVerified': False, 'isAdmin': False, 'isSuperAdmin': False}
        assert 'password' not in data
        assert 'hashedPassword' not in data

    def test_admin_grants_within_own_realm(self, client, users, realms, auth_headers):
        response = client.post('/api/v1/users', headers=auth_headers(users['admin']),
                               json=self.new_user(realms['private'], isAdmin=True, isSuperAdmin=True))

        assert response.status_code == 201
        roles = json.loads(response.data)['roles']
        assert roles == {'isVerified': False, 'isAdmin': True, 'isSuperAdmin': False}

    def test_admin_cannot_grant_in_other_realm(self, client, users, realms, auth_headers):
        response = client.post('/api/v1/users', headers=auth_headers(users['admin']),
                               json=self.new_user(realms['other'], isVerified=True))

        assert response.status_code == 201
        assert json.loads(response.data)['roles']['isVerified'] is False

    def test_super_admin_grants_anything(self, client, users, realms, auth_headers):
        response = client.post('/api/v1/users', headers=auth_headers(users['super']),
                               json=self.new_user(realms['private'], isSuperAdmin=True))

        assert response.status_code == 201
        assert json.loads(response.data)['roles']['isSuperAdmin'] is True

    def test_duplicate_username(self, client, users, realms):
        response = client.post('/api/v1/users', json=self.new_user(realms['private'], username='plainuser'))
        assert response.status_code == 409

    def test_unknown_realm(self, client, db_session):
        response = client.post('/api/v1/users', json=self.new_user(8675309))
        assert response.status_code == 422

    def test_short_password(self, client, realms):
        body = self.new_user(realms['private'])
        body['password'] = 'short'
        response = client.post('/api/v1/users', json=body)
        assert response.status_code == 422


class TestReadUsers:
    """Tests for GET /api/v1/users and /api/v1/users/<id>."""

    def test_list_requires_token(self, client, users):
        assert client.get('/api/v1/users').status_code == 401

    def test_list_own_realm(self, client, users, auth_headers):
        response = client.get('/api/v1/users', headers=auth_headers(users['plain']))
        ids = {u['id'] for u in json.loads(response.data)}
        assert ids == {users['plain'], users['verified'], users['admin']}

    def test_super_admin_lists_everyone(self, client, users, auth_headers):
        response = client.get('/api/v1/users', headers=auth_headers(users['super']))
        assert len(json.loads(response.data)) == len(users)

    def test_read_other_user_forbidden(self, client, users, auth_headers):
        response = client.get(f"/api/v1/users/{users['verified']}", headers=auth_headers(users['plain']))
        assert response.status_code == 403

    def test_admin_reads_realm_member(self, client, users, auth_headers):
        response = client.get(f"/api/v1/users/{users['plain']}", headers=auth_headers(users['admin']))
        assert response.status_code == 200
        assert json.loads(response.data)['username'] == 'plainuser'

    def test_missing_user(self, client, users, auth_headers):
        response = client.get('/api/v1/users/99999', headers=auth_headers(users['super']))
        assert response.status_code == 404


class TestPatchUser:
    """Tests for PATCH /api/v1/users/<id>."""

    def test_admin_patches_realm_member(self, client, users, auth_headers):
        response = client.patch(f"/api/v1/users/{users['plain']}", headers=auth_headers(users['admin']),
                                json={'roles': {'isVerified': True}})
        assert response.status_code == 204

        user = json.loads(client.get(f"/api/v1/users/{users['plain']}",
                                     headers=auth_headers(users['admin'])).data)
        assert user['roles']['isVerified'] is True

    def test_admin_of_other_realm_forbidden(self, client, users, auth_headers):
        response = client.patch(f"/api/v1/users/{users['plain']}", headers=auth_headers(users['other_admin']),
                                json={'firstName': 'Hijacked'})
        assert response.status_code == 403
        assert json.loads(response.data)['reason'] == 'other_realm'

    def test_plain_user_patching_other_forbidden(self, client, users, auth_headers):
        response = client.patch(f"/api/v1/users/{users['verified']}", headers=auth_headers(users['plain']),
                                json={'firstName': 'Nope'})
        assert response.status_code == 403
        assert json.loads(response.data)['reason'] == 'not_admin'

    def test_self_patch_cannot_escalate(self, client, users, auth_headers):
        headers = auth_headers(users['plain'])
        response = client.patch(f"/api/v1/users/{users['plain']}", headers=headers,
                                json={'firstName': 'Renamed', 'roles': {'isAdmin': True, 'isSuperAdmin': True}})
        assert response.status_code == 204

        user = json.loads(client.get(f"/api/v1/users/{users['plain']}", headers=headers).data)
        assert user['firstName'] == 'Renamed'
        assert user['roles'] == {'isVerified': False, 'isAdmin': False, 'isSuperAdmin': False}

    def test_self_patch_password(self, client, users, auth_headers):
        client.patch(f"/api/v1/users/{users['plain']}", headers=auth_headers(users['plain']),
                     json={'password': 'brandnewpassword'})

        response = client.post('/api/v1/authenticate',
                               json={'username': 'plainuser', 'password': 'brandnewpassword'})
        assert response.status_code == 200

    def test_patch_requires_token(self, client, users):
        response = client.patch(f"/api/v1/users/{users['plain']}", json={'firstName': 'Anon'})
        assert response.status_code == 401

    def test_patch_missing_user(self, client, users, auth_headers):
        response = client.patch('/api/v1/users/99999', headers=auth_headers(users['admin']),
                                json={'firstName': 'Nobody'})
        assert response.status_code == 404


class TestDeleteUser:
    """Tests for DELETE /api/v1/users/<id>."""

    def test_admin_deletes_realm_member(self, client, users, auth_headers):
        headers = auth_headers(users['admin'])
        assert client.delete(f"/api/v1/users/{users['plain']}", headers=headers).status_code == 204
        assert client.get(f"/api/v1/users/{users['plain']}", headers=headers).status_code == 404

    def test_outsider_cannot_delete(self, client, users, auth_headers):
        response = client.delete(f"/api/v1/users/{users['plain']}", headers=auth_headers(users['outsider']))
        assert response.status_code == 403


class TestEvents:
    """Tests for the read-only event and match endpoints."""

    def test_list_events(self, client, sample_match):
        data = json.loads(client.get('/api/v1/events').data)
        assert [e['key'] for e in data] == ['2024casd']

    def test_get_event(self, client, sample_match):
        data = json.loads(client.get('/api/v1/events/2024casd').data)
        assert data['name'] == 'San Diego'

    def test_list_matches(self, client, sample_match):
        data = json.loads(client.get('/api/v1/events/2024casd/matches').data)
        assert data[0]['key'] == 'qm1'
        assert data[0]['redScore'] is None

    def test_unknown_event(self, client, db_session):
        assert client.get('/api/v1/events/1999none').status_code == 404


class TestReports:
    """Tests for report upserts and realm-scoped reads."""

    def test_put_creates_then_updates(self, client, users, auth_headers, sample_match):
        headers = auth_headers(users['plain'])

        first = client.put(REPORT_URL, headers=headers, json=report_body())
        second = client.put(REPORT_URL, headers=headers, json=report_body(autoName='source side'))

        assert first.status_code == 201
        assert second.status_code == 204

        reports = json.loads(client.get(REPORT_URL, headers=headers).data)
        assert len(reports) == 1
        assert reports[0]['autoName'] == 'source side'

    def test_ownership_comes_from_token(self, client, users, realms, auth_headers, sample_match):
        body = report_body(realmId=realms['sharing'], reporterId=users['super'])
        client.put(REPORT_URL, headers=auth_headers(users['plain']), json=body)

        reports = json.loads(client.get(REPORT_URL, headers=auth_headers(users['admin'])).data)
        assert reports[0]['reporterId'] == users['plain']
        # Body realmId is ignored so the report stays private
        assert json.loads(client.get(REPORT_URL).data) == []

    def test_requires_token(self, client, sample_match):
        assert client.put(REPORT_URL, json=report_body()).status_code == 401

    def test_unknown_match(self, client, users, auth_headers, sample_match):
        response = client.put('/api/v1/events/2024casd/matches/qm99/teams/frc254/reports',
                              headers=auth_headers(users['plain']), json=report_body())
        assert response.status_code == 404

    def test_more_successes_than_attempts(self, client, users, auth_headers, sample_match):
        body = report_body(data={'auto': [], 'teleop': [{'statName': 'Amp', 'attempts': 1, 'successes': 2}]})
        response = client.put(REPORT_URL, headers=auth_headers(users['plain']), json=body)
        assert response.status_code == 422

    def test_visibility_across_realms(self, client, users, auth_headers, sample_match):
        client.put(REPORT_URL, headers=auth_headers(users['plain']), json=report_body())
        client.put(REPORT_URL, headers=auth_headers(users['sharer']), json=report_body())
        client.put(REPORT_URL, headers=auth_headers(users['outsider']), json=report_body())

        def reporters(headers=None):
            data = json.loads(client.get(REPORT_URL, headers=headers or {}).data)
            return {r['reporterId'] for r in data}

        assert reporters() == {users['sharer']}
        assert reporters(auth_headers(users['verified'])) == {users['plain'], users['sharer']}
        assert reporters(auth_headers(users['outsider'])) == {users['outsider'], users['sharer']}
        assert reporters(auth_headers(users['super'])) == {users['plain'], users['sharer'], users['outsider']}

    def test_invalid_token_reads_as_anonymous(self, client, users, auth_headers, sample_match):
        client.put(REPORT_URL, headers=auth_headers(users['plain']), json=report_body())
        response = client.get(REPORT_URL, headers={'Authorization': 'Bearer garbage'})
        assert response.status_code == 200
        assert json.loads(response.data) == []

    def test_event_level_reads(self, client, users, auth_headers, sample_match):
        headers = auth_headers(users['plain'])
        client.put(REPORT_URL, headers=headers, json=report_body())

        team = json.loads(client.get('/api/v1/events/2024casd/teams/frc254/reports', headers=headers).data)
        event = json.loads(client.get('/api/v1/events/2024casd/reports', headers=headers).data)
        assert len(team) == len(event) == 1
        assert event[0]['matchKey'] == 'qm1'

    def test_write_publishes_to_writer_realm(self, app, client, users, realms, auth_headers,
                                             sample_match, mocker):
        publisher = mocker.MagicMock()
        mocker.patch.object(app, 'publisher', publisher)

        client.put(REPORT_URL, headers=auth_headers(users['plain']), json=report_body())

        notice = publisher.submit.call_args[0][0]
        assert notice.realm_id == realms['private']
        assert notice.reporter_id == users['plain']
        assert notice.type == 'report.created'


class TestComments:
    """Tests for comment upserts."""

    def test_put_creates_then_updates(self, client, users, auth_headers, sample_match):
        headers = auth_headers(users['plain'])

        assert client.put(COMMENT_URL, headers=headers, json={'comment': 'Fast cycles'}).status_code == 201
        assert client.put(COMMENT_URL, headers=headers, json={'comment': 'Tipped over'}).status_code == 204

        comments = json.loads(client.get('/api/v1/events/2024casd/teams/frc254/comments', headers=headers).data)
        assert [c['comment'] for c in comments] == ['Tipped over']

    def test_deleted_writer_token_rejected(self, client, users, auth_headers, sample_match):
        headers = auth_headers(users['plain'])
        assert client.delete(f"/api/v1/users/{users['plain']}", headers=headers).status_code == 204

        comment = client.put(COMMENT_URL, headers=headers, json={'comment': 'still here?'})
        report = client.put(REPORT_URL, headers=headers, json=report_body())

        assert comment.status_code == 401
        assert json.loads(comment.data)['reason'] == 'unknown_subject'
        assert report.status_code == 401

    def test_private_comments_hidden(self, client, users, auth_headers, sample_match):
        client.put(COMMENT_URL, headers=auth_headers(users['plain']), json={'comment': 'secret'})
        assert json.loads(client.get(COMMENT_URL, headers=auth_headers(users['outsider'])).data) == []


class TestRealms:
    """Tests for realm endpoints."""

    def test_super_admin_creates_realm(self, client, users, auth_headers):
        response = client.post('/api/v1/realms', headers=auth_headers(users['super']),
                               json={'name': 'Team 1678', 'shareReports': True})
        assert response.status_code == 201
        assert json.loads(response.data)['shareReports'] is True

    def test_admin_cannot_create_realm(self, client, users, auth_headers):
        response = client.post('/api/v1/realms', headers=auth_headers(users['admin']), json={'name': 'Mine'})
        assert response.status_code == 403

    def test_duplicate_realm(self, client, users, auth_headers):
        response = client.post('/api/v1/realms', headers=auth_headers(users['super']), json={'name': 'Pigmice'})
        assert response.status_code == 409

    def test_anonymous_sees_sharing_realms(self, client, realms):
        data = json.loads(client.get('/api/v1/realms').data)
        assert [r['id'] for r in data] == [realms['sharing']]

    def test_admin_toggles_sharing(self, client, users, realms, auth_headers, sample_match):
        client.put(REPORT_URL, headers=auth_headers(users['plain']), json=report_body())
        assert json.loads(client.get(REPORT_URL).data) == []

        response = client.patch(f"/api/v1/realms/{realms['private']}", headers=auth_headers(users['admin']),
                                json={'shareReports': True})
        assert response.status_code == 204
        assert len(json.loads(client.get(REPORT_URL).data)) == 1

    def test_admin_cannot_patch_other_realm(self, client, users, realms, auth_headers):
        response = client.patch(f"/api/v1/realms/{realms['other']}", headers=auth_headers(users['admin']),
                                json={'shareReports': True})
        assert response.status_code == 403


class TestSchemas:
    """Tests for schema endpoints."""

    schema = {'auto': [{'name': 'Leave', 'type': 'boolean'}], 'teleop': [{'name': 'Speaker', 'type': 'number'}]}

    def test_standard_schema(self, client, users, auth_headers):
        headers = auth_headers(users['super'])
        created = client.post('/api/v1/schemas', headers=headers, json=dict(self.schema, year=2024))
        duplicate = client.post('/api/v1/schemas', headers=headers, json=dict(self.schema, year=2024))

        assert created.status_code == 201
        assert duplicate.status_code == 409

        data = json.loads(client.get('/api/v1/schemas/year/2024').data)
        assert data['year'] == 2024
        assert 'realmId' not in data

    def test_standard_schema_needs_super_admin(self, client, users, auth_headers):
        response = client.post('/api/v1/schemas', headers=auth_headers(users['admin']),
                               json=dict(self.schema, year=2024))
        assert response.status_code == 403

    def test_realm_schema_defaults_to_own_realm(self, client, users, realms, auth_headers):
        response = client.post('/api/v1/schemas', headers=auth_headers(users['admin']), json=self.schema)
        assert response.status_code == 201
        schema = json.loads(response.data)
        assert schema['realmId'] == realms['private']

        assert client.get(f"/api/v1/schemas/{schema['id']}").status_code == 404
        assert client.get(f"/api/v1/schemas/{schema['id']}", headers=auth_headers(users['plain'])).status_code == 200

    def test_schema_for_unknown_realm(self, client, users, auth_headers):
        response = client.post('/api/v1/schemas', headers=auth_headers(users['super']),
                               json=dict(self.schema, realmId=99999))
        assert response.status_code == 422
        assert json.loads(response.data)['reason'] == 'foreign_key'

    def test_invalid_stat_type(self, client, users, auth_headers):
        body = {'auto': [{'name': 'Leave', 'type': 'string'}], 'teleop': []}
        response = client.post('/api/v1/schemas', headers=auth_headers(users['admin']), json=body)
        assert response.status_code == 422

    def test_missing_standard_schema(self, client, db_session):
        assert client.get('/api/v1/schemas/year/1999').status_code == 404


class TestInternalFaults:
    """Unexpected failures are opaque to the caller."""

    def test_opaque_500(self, app, client, users, auth_headers, sample_match, mocker):
        mocker.patch.object(app.observations, 'event_reports',
                            side_effect=RuntimeError('connection string postgres://secret'))
        log = mocker.patch('scouting.app.log_internal_fault')

        response = client.get('/api/v1/events/2024casd/reports', headers=auth_headers(users['plain']))

        assert response.status_code == 500
        assert b'secret' not in response.data
        assert json.loads(response.data)['kind'] == 'internal'
        assert log.call_args[1]['ctx'].subject_id == users['plain']
        assert log.call_args[1]['operation'] == 'events.get_event_reports'

    def test_unknown_route(self, client, db_session):
        response = client.get('/api/v1/nothing-here')
        assert response.status_code == 404
        assert json.loads(response.data)['kind'] == 'http'
