"""Tests for the JSON API"""
import pytest


def preview(client, qr_hash, scanner='gate-1'):
    return client.post('/scan/preview', json={'qrHash': qr_hash}, headers={'X-Scanner-Id': scanner})


def confirm(client, qr_hash, action, meal_type=None, scanner='gate-1'):
    body = {'qrHash': qr_hash, 'action': action}
    if meal_type:
        body['mealType'] = meal_type
    return client.post('/scan/confirm', json=body, headers={'X-Scanner-Id': scanner})


@pytest.fixture
def lunch_mode(client, lab_a):
    response = client.put('/mode', json={
        'mode': 'MEAL',
        'selectedMealType': 'LUNCH',
        'allowedLabIds': [lab_a['id']],
    })
    assert response.status_code == 200
    return response.get_json()


class TestScanEndpoints:

    def test_attendance_round_trip(self, client, participant):
        qr_hash = participant['qr_code_hash']

        response = preview(client, qr_hash)
        assert response.status_code == 200
        data = response.get_json()
        assert data['success'] is True
        assert data['proposedAction'] == 'ENTRY'
        assert data['subjectType'] == 'participant'
        assert data['name'] == 'Ada Lovelace'
        assert data['mode'] == 'ATTENDANCE'
        assert data['isCheckedIn'] is False

        response = confirm(client, qr_hash, 'ENTRY')
        assert response.status_code == 200
        data = response.get_json()
        assert data['success'] is True
        assert data['subject']['isCheckedIn'] is True

        assert preview(client, qr_hash).get_json()['proposedAction'] == 'EXIT'
        assert confirm(client, qr_hash, 'EXIT').get_json()['subject']['isCheckedIn'] is False

    def test_preview_accepts_snake_case_key(self, client, participant):
        response = client.post('/scan/preview', json={'qr_hash': participant['qr_code_hash']})
        assert response.status_code == 200

    def test_duplicate_entry_is_a_conflict(self, client, participant):
        confirm(client, participant['qr_code_hash'], 'ENTRY')
        response = confirm(client, participant['qr_code_hash'], 'ENTRY')

        assert response.status_code == 409
        data = response.get_json()
        assert data['success'] is False
        assert data['reason'] == 'AlreadyCheckedIn'

    def test_unknown_hash(self, client):
        for response in (preview(client, 'garbage'), confirm(client, 'garbage', 'ENTRY')):
            assert response.status_code == 404
            assert response.get_json()['reason'] == 'NotFound'

    def test_missing_body(self, client):
        response = client.post('/scan/preview', data='not json', content_type='text/plain')
        assert response.status_code == 400
        assert response.get_json()['reason'] == 'ValidationError'

    def test_meal_flow(self, client, participant, lunch_mode):
        qr_hash = participant['qr_code_hash']

        data = preview(client, qr_hash).get_json()
        assert data['proposedAction'] == 'CONSUME'
        assert data['mealType'] == 'LUNCH'

        response = confirm(client, qr_hash, 'CONSUME', 'LUNCH')
        assert response.status_code == 200
        assert response.get_json()['message'] == 'LUNCH consumed'

        response = confirm(client, qr_hash, 'CONSUME', 'LUNCH')
        assert response.status_code == 409
        assert response.get_json()['reason'] == 'AlreadyConsumed'
        assert response.get_json()['message'] == 'Ada Lovelace already had LUNCH'

    def test_lab_not_eligible_is_forbidden(self, client, make_participant, lab_b, lunch_mode):
        quinn = make_participant('Quinn', 'quinn@example.com', lab_b)
        response = preview(client, quinn['qr_code_hash'])
        assert response.status_code == 403
        assert response.get_json()['reason'] == 'LabNotEligible'

    def test_scanner_id_from_body(self, client, db, participant):
        client.post('/scan/confirm', json={
            'qrHash': participant['qr_code_hash'],
            'action': 'ENTRY',
            'scannerId': 'kiosk-7',
        })
        log = db.execute_query("SELECT scanned_by FROM scan_logs", fetch_all=False)
        assert log['scanned_by'] == 'kiosk-7'

    def test_blank_scanner_id_falls_back_to_unknown(self, client, db, participant):
        client.post('/scan/confirm', json={
            'qrHash': participant['qr_code_hash'],
            'action': 'ENTRY',
            'scannerId': '   ',
        }, headers={'X-Scanner-Id': '  '})
        log = db.execute_query("SELECT scanned_by FROM scan_logs", fetch_all=False)
        assert log['scanned_by'] == 'unknown'

    def test_meal_mode_with_unknown_lab(self, client):
        response = client.put('/mode', json={
            'mode': 'MEAL', 'selectedMealType': 'LUNCH', 'allowedLabIds': [9999],
        })
        assert response.status_code == 422
        assert response.get_json()['reason'] == 'InvalidModeConfig'

    def test_scanner_id_defaults_to_unknown(self, client, db, participant):
        client.post('/scan/confirm', json={'qrHash': participant['qr_code_hash'], 'action': 'ENTRY'})
        log = db.execute_query("SELECT scanned_by FROM scan_logs", fetch_all=False)
        assert log['scanned_by'] == 'unknown'


class TestModeEndpoints:

    def test_get_default_mode(self, client):
        data = client.get('/mode').get_json()
        assert data['success'] is True
        assert data['mode'] == 'ATTENDANCE'

    def test_set_mode(self, client, lunch_mode, lab_a):
        assert lunch_mode['mode'] == 'MEAL'
        data = client.get('/mode').get_json()
        assert data['selectedMealType'] == 'LUNCH'
        assert data['allowedLabIds'] == [lab_a['id']]

    def test_invalid_meal_config(self, client, lunch_mode, lab_a):
        response = client.put('/mode', json={'mode': 'MEAL', 'allowedLabIds': [lab_a['id']]})

        assert response.status_code == 422
        assert response.get_json()['reason'] == 'InvalidModeConfig'
        assert client.get('/mode').get_json()['selectedMealType'] == 'LUNCH'

    def test_malformed_mode(self, client):
        response = client.put('/mode', json={'mode': 'PARTY'})
        assert response.status_code == 400
        assert response.get_json()['reason'] == 'ValidationError'


class TestAdminEndpoints:

    def test_participant_crud(self, client, team, lab_a, lab_b):
        response = client.post('/participants', json={
            'name': 'Linus',
            'email': 'Linus@Example.com',
            'teamId': team['id'],
            'labId': lab_a['id'],
        })
        assert response.status_code == 201
        participant = response.get_json()['participant']
        assert participant['email'] == 'linus@example.com'
        assert len(participant['qr_code_hash']) == 64

        response = client.put(f"/participants/{participant['id']}/lab", json={'labId': lab_b['id']})
        assert response.status_code == 200
        assert response.get_json()['participant']['lab_name'] == 'Lab B'

        listing = client.get('/participants').get_json()['participants']
        assert [p['id'] for p in listing] == [participant['id']]

        assert client.delete(f"/participants/{participant['id']}").status_code == 200
        assert client.get(f"/participants/{participant['id']}").status_code == 404

    def test_create_participant_errors(self, client, participant, team, lab_a):
        base = {'name': 'Dup', 'teamId': team['id'], 'labId': lab_a['id']}

        duplicate = client.post('/participants', json={**base, 'email': 'ada@example.com'})
        assert duplicate.status_code == 409

        missing_team = client.post('/participants', json={**base, 'email': 'x@example.com', 'teamId': 999})
        assert missing_team.status_code == 404

        bad_email = client.post('/participants', json={**base, 'email': 'not-an-email'})
        assert bad_email.status_code == 400

    def test_update_lab_requires_integer(self, client, participant):
        response = client.put(f"/participants/{participant['id']}/lab", json={'labId': 'B'})
        assert response.status_code == 400

    def test_checkout(self, client, participant):
        confirm(client, participant['qr_code_hash'], 'ENTRY')

        response = client.post(f"/participants/{participant['id']}/checkout")
        assert response.status_code == 200
        assert response.get_json()['participant']['is_checked_in'] is False
        assert client.post('/participants/999/checkout').status_code == 404

    def test_checkout_all(self, client, participant, make_participant, lab_a):
        other = make_participant('Alan', 'alan@example.com', lab_a)
        confirm(client, participant['qr_code_hash'], 'ENTRY')
        confirm(client, other['qr_code_hash'], 'ENTRY')

        data = client.post('/participants/checkout-all').get_json()
        assert data['count'] == 2
        assert client.get('/stats').get_json()['checkedIn'] == 0

    def test_participant_qrcode(self, client, participant):
        response = client.get(f"/participants/{participant['id']}/qrcode")
        assert response.status_code == 200
        assert response.mimetype == 'image/png'
        assert response.data.startswith(b'\x89PNG')

    def test_volunteer_endpoints(self, client):
        response = client.post('/volunteers', json={'firstName': 'Katherine', 'email': 'kj@example.com'})
        assert response.status_code == 201
        volunteer = response.get_json()['volunteer']
        assert volunteer['qr_code_hash'] is None

        issued = client.post(f"/volunteers/{volunteer['id']}/generate-qr").get_json()
        assert issued['success'] is True
        assert preview(client, issued['qrCodeHash']).get_json()['subjectType'] == 'volunteer'

        confirm(client, issued['qrCodeHash'], 'ENTRY')
        response = client.post(f"/volunteers/{volunteer['id']}/checkout")
        assert response.get_json()['volunteer']['is_checked_in'] is False

        assert len(client.get('/volunteers').get_json()['volunteers']) == 1
        assert client.delete(f"/volunteers/{volunteer['id']}").status_code == 200
        assert client.delete(f"/volunteers/{volunteer['id']}").status_code == 404

    def test_teams_and_labs(self, client):
        assert client.post('/teams', json={'name': 'Segfaults'}).status_code == 201
        assert client.post('/teams', json={'name': 'Segfaults'}).status_code == 409
        assert client.post('/labs', json={'name': ''}).status_code == 400
        assert client.post('/labs', json={'name': 'Lab C'}).status_code == 201

        assert [t['name'] for t in client.get('/teams').get_json()['teams']] == ['Segfaults']
        assert [l['name'] for l in client.get('/labs').get_json()['labs']] == ['Lab C']

    def test_stats_and_recent_scans(self, client, participant, volunteer):
        confirm(client, participant['qr_code_hash'], 'ENTRY', scanner='gate-1')
        confirm(client, volunteer['qr_code_hash'], 'ENTRY', scanner='gate-2')

        stats = client.get('/stats').get_json()
        assert stats['total'] == 1
        assert stats['checkedIn'] == 1
        assert stats['percentage'] == 100
        assert stats['teamCount'] == 1
        assert stats['volunteersTotal'] == 1
        assert stats['volunteersCheckedIn'] == 1

        scans = client.get('/scans/recent?limit=1').get_json()['scans']
        assert len(scans) == 1
        assert scans[0]['name'] == 'Grace Hopper'
        assert scans[0]['scanned_by'] == 'gate-2'

        assert client.get('/scans/recent?limit=0').status_code == 400

    def test_meal_analytics_and_reset(self, client, participant, lab_a, lunch_mode):
        confirm(client, participant['qr_code_hash'], 'CONSUME', 'LUNCH')

        analytics = client.get('/meals/analytics').get_json()
        assert analytics['byMealType']['LUNCH'] == 1
        assert analytics['byLab'][0]['meals']['LUNCH'] == 1

        assert client.post('/meals/reset', json={'mealType': 'BRUNCH'}).status_code == 400
        response = client.post('/meals/reset', json={'mealType': 'LUNCH'})
        assert response.get_json()['deleted'] == 1
        assert preview(client, participant['qr_code_hash']).get_json()['proposedAction'] == 'CONSUME'

    def test_attendance_csv(self, client, participant):
        response = client.get('/reports/attendance.csv')
        assert response.status_code == 200
        assert response.mimetype == 'text/csv'
        assert 'attachment' in response.headers['Content-Disposition']
        lines = response.get_data(as_text=True).strip().splitlines()
        assert lines[0].startswith('id,name,email,team,lab')
        assert 'ada@example.com' in lines[1]

    def test_health(self, client):
        response = client.get('/health')
        assert response.status_code == 200
        assert response.get_json()['success'] is True

    def test_unknown_route_returns_json(self, client):
        response = client.get('/nope')
        assert response.status_code == 404
        assert response.get_json()['success'] is False

    def test_wrong_method_returns_json(self, client):
        response = client.get('/scan/confirm')
        assert response.status_code == 405
        assert response.get_json()['success'] is False
