"""
Coach API Tests
===============

End-to-end check-in → feedback loop through the Flask blueprint.
"""

import threading
import time

import pytest

from coach_errors import SessionBusy
from session_store import InMemorySessionStore, new_record


def _start(client, check_in):
    response = client.post('/api/checkin', json=check_in)
    return response, response.get_json()


@pytest.mark.api
@pytest.mark.critical
def test_checkin_starts_normal_session(client, session_store, sample_check_in):
    """Calm knee check-in → 201, NORMAL, first drill served and record stored."""
    response, data = _start(client, sample_check_in)

    assert response.status_code == 201
    assert data['mode'] == 'NORMAL'
    assert data['flag'] is None
    assert data['current_index'] == 0
    assert data['current_drill']['id'] == 'FOOT_TRIPOD'
    assert data['recalibrate'] is False

    record = session_store.load(data['session_id'])
    assert record['state'] == data['state']
    assert record['current_index'] == 0


@pytest.mark.api
@pytest.mark.critical
def test_checkin_blocked_by_red_flag(client, sample_check_in):
    """A red flag returns the flag and no session."""
    sample_check_in['free_text'] = 'my calf is swollen and sore'

    response, data = _start(client, sample_check_in)

    assert response.status_code == 200
    assert data['mode'] == 'BLOCKED'
    assert data['session_id'] is None
    assert data['state'] is None
    assert data['flag']['id'] == 'CALF_PAIN_SWELLING'


@pytest.mark.api
def test_checkin_validation_error(client, sample_check_in):
    """Out-of-range pain is rejected, not clamped."""
    sample_check_in['pain_level'] = 14

    response = client.post('/api/checkin', json=sample_check_in)

    assert response.status_code == 400
    assert 'pain_level' in response.get_json()['details']


@pytest.mark.api
def test_checkin_without_body(client):
    """A missing JSON body is a validation error."""
    response = client.post('/api/checkin', data='not json', content_type='text/plain')

    assert response.status_code == 400
    assert response.get_json()['error'] == 'Validation failed'


@pytest.mark.api
def test_checkin_with_calibration_focus(client, sample_check_in, sample_calibration):
    """A matching calibration adds the focus zone to the outcome."""
    sample_check_in['calibration'] = sample_calibration

    response, data = _start(client, sample_check_in)

    assert response.status_code == 201
    assert data['focus_zone']['zone_index'] == 3
    assert 'Mid athletic stance' in data['reasoning']


@pytest.mark.api
def test_checkin_with_corrupt_calibration_asks_to_recalibrate(client, sample_check_in):
    """A zone index outside the table still starts the session."""
    sample_check_in['calibration'] = {'body_part': 'knee', 'problem_zones': [{'zone_index': 40, 'severity': 2}]}

    response, data = _start(client, sample_check_in)

    assert response.status_code == 201
    assert data['recalibrate'] is True
    assert data['focus_zone'] is None


@pytest.mark.api
@pytest.mark.integration
def test_feedback_flow_with_regression(client, session_store, sample_check_in):
    """Step forward, then regress to RESET and rewind to the first RESET drill."""
    _, started = _start(client, sample_check_in)
    session_id = started['session_id']

    response = client.post(f'/api/sessions/{session_id}/feedback',
                           json={'drill_id': 'FOOT_TRIPOD', 'pain': 2, 'felt_stable': True})
    data = response.get_json()

    assert response.status_code == 200
    assert data['rewound'] is False
    assert data['current_index'] == 1
    assert data['current_drill']['id'] == 'GLUTE_BRIDGE_HEEL_DRAG'

    response = client.post(f'/api/sessions/{session_id}/feedback',
                           json={'drill_id': 'GLUTE_BRIDGE_HEEL_DRAG', 'pain': 8, 'felt_stable': True})
    data = response.get_json()

    assert response.status_code == 200
    assert data['rewound'] is True
    assert data['current_index'] == 0
    assert data['state']['mode'] == 'RESET'
    assert data['current_drill']['id'] == 'QUAD_SET'

    record = session_store.load(session_id)
    assert record['state']['mode'] == 'RESET'
    assert record['last_feedback']['pain'] == 8


@pytest.mark.api
def test_feedback_notes_are_redacted(client, session_store, sample_check_in):
    """Stored notes have contact details removed."""
    _, started = _start(client, sample_check_in)
    session_id = started['session_id']

    client.post(f'/api/sessions/{session_id}/feedback', json={
        'drill_id': 'FOOT_TRIPOD', 'pain': 1, 'felt_stable': True,
        'notes': 'easy today, email me at jo@example.com'
    })

    notes = session_store.load(session_id)['last_feedback']['notes']
    assert 'jo@example.com' not in notes
    assert '[email removed]' in notes


@pytest.mark.api
def test_feedback_validation_error(client, sample_check_in):
    """A string felt_stable is rejected."""
    _, started = _start(client, sample_check_in)

    response = client.post(f"/api/sessions/{started['session_id']}/feedback",
                           json={'drill_id': 'FOOT_TRIPOD', 'pain': 1, 'felt_stable': 'yes'})

    assert response.status_code == 400
    assert 'felt_stable' in response.get_json()['details']


@pytest.mark.api
def test_feedback_after_completion(client, session_store, normal_knee_state):
    """A finished plan accepts no more feedback."""
    session_store.save('done', new_record('done', normal_knee_state, current_index=3))

    response = client.post('/api/sessions/done/feedback',
                           json={'drill_id': 'WALL_BOW', 'pain': 1, 'felt_stable': True})

    assert response.status_code == 409
    assert response.get_json()['error'] == 'Session complete'


@pytest.mark.api
def test_get_session(client, session_store, normal_knee_state):
    """Stored record plus the drill at the current position."""
    session_store.save('abc', new_record('abc', normal_knee_state, current_index=2))

    response = client.get('/api/sessions/abc')
    data = response.get_json()

    assert response.status_code == 200
    assert data['complete'] is False
    assert data['current_drill']['id'] == 'WALL_BOW'


@pytest.mark.api
def test_unknown_session(client):
    """Unknown session ids return 404 for reads and feedback."""
    assert client.get('/api/sessions/missing').status_code == 404

    response = client.post('/api/sessions/missing/feedback',
                           json={'drill_id': 'WALL_BOW', 'pain': 1, 'felt_stable': True})
    assert response.status_code == 404


@pytest.mark.api
def test_stored_blocked_state_returns_409(client, session_store, normal_knee_state):
    """A tampered BLOCKED state cannot be advanced."""
    blocked = dict(normal_knee_state, mode='BLOCKED')
    session_store.save('blocked', new_record('blocked', blocked))

    response = client.post('/api/sessions/blocked/feedback',
                           json={'drill_id': 'FOOT_TRIPOD', 'pain': 1, 'felt_stable': True})

    assert response.status_code == 409
    assert response.get_json()['error'] == 'Session blocked'


@pytest.mark.api
def test_rank_calibration(client, sample_calibration):
    """The most severe zone is returned with the movement split."""
    response = client.post('/api/calibration/rank', json=sample_calibration)
    data = response.get_json()

    assert response.status_code == 200
    assert data['focus_zone']['zone_index'] == 3
    assert data['focus_zone']['severity'] == 3
    assert 'running' in data['movements']['avoid']
    movements = data['movements']
    assert len(movements['safe']) + len(movements['caution']) + len(movements['avoid']) == 20


@pytest.mark.api
def test_rank_calibration_without_zones(client):
    """No problem zones → no focus zone."""
    response = client.post('/api/calibration/rank', json={'body_part': 'shoulder', 'problem_zones': []})

    assert response.status_code == 200
    assert response.get_json()['focus_zone'] is None


@pytest.mark.api
@pytest.mark.critical
def test_rank_calibration_bad_zone_index(client):
    """Corrupt zone index → 422 asking the user to recalibrate."""
    response = client.post('/api/calibration/rank',
                           json={'body_part': 'achilles', 'problem_zones': [{'zone_index': 7, 'severity': 1}]})

    assert response.status_code == 422
    assert response.get_json()['recalibrate'] is True


@pytest.mark.api
def test_screen_endpoint(client):
    """Stand-alone screening returns the first matching flag or null."""
    response = client.post('/api/screen', json={'sensations': ['numbness'], 'body_part': 'shoulder'})
    assert response.get_json()['flag']['id'] == 'NUMBNESS_WEAKNESS'

    response = client.post('/api/screen', json={'sensations': ['stiff']})
    assert response.get_json()['flag'] is None


@pytest.mark.api
def test_get_drill(client):
    """Drill records are served per body part."""
    response = client.get('/api/drills/knee/QUAD_SET')

    assert response.status_code == 200
    assert response.get_json()['title'] == 'Quad Set'


@pytest.mark.api
def test_get_unknown_drill(client):
    """Unknown drills and body parts are 404s."""
    assert client.get('/api/drills/knee/BACKFLIP').status_code == 404
    assert client.get('/api/drills/elbow/QUAD_SET').status_code == 404


@pytest.mark.api
def test_second_trigger_in_reset_steps_forward(client, sample_check_in):
    """Once in RESET, another trigger keeps the RESET plan and moves to the next drill."""
    _, started = _start(client, sample_check_in)
    url = f"/api/sessions/{started['session_id']}/feedback"

    client.post(url, json={'drill_id': 'FOOT_TRIPOD', 'pain': 9, 'felt_stable': True})
    response = client.post(url, json={'drill_id': 'QUAD_SET', 'pain': 8, 'felt_stable': False})
    data = response.get_json()

    assert response.status_code == 200
    assert data['rewound'] is False
    assert data['current_index'] == 1
    assert data['state']['mode'] == 'RESET'
    assert data['current_drill']['id'] == 'HEEL_SLIDES'


class SlowLoadStore(InMemorySessionStore):
    """In-memory store whose reads are slow enough for requests to overlap"""

    def load(self, session_id):
        record = super().load(session_id)
        time.sleep(0.2)
        return record


@pytest.mark.api
@pytest.mark.critical
def test_overlapping_feedback_keeps_regression(test_env, normal_knee_state):
    """A calm update racing an unstable one never overwrites the RESET regression."""
    from main import create_app

    store = SlowLoadStore()
    store.save('race', new_record('race', normal_knee_state))
    app = create_app(store)
    statuses = {}

    def post(name, feedback):
        response = app.test_client().post('/api/sessions/race/feedback', json=feedback)
        statuses[name] = response.status_code

    threads = [
        threading.Thread(target=post, args=('unstable', {'drill_id': 'FOOT_TRIPOD', 'pain': 9, 'felt_stable': False})),
        threading.Thread(target=post, args=('calm', {'drill_id': 'FOOT_TRIPOD', 'pain': 0, 'felt_stable': True})),
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    record = store.load('race')
    assert statuses == {'unstable': 200, 'calm': 200}
    assert record['state']['mode'] == 'RESET'
    assert record['feedback_count'] == 2
    assert record['regressed'] is True


class BusyStore(InMemorySessionStore):
    """Store whose session locks are always held elsewhere"""

    def lock(self, name):
        raise SessionBusy(name)


@pytest.mark.api
def test_feedback_while_session_busy(test_env, normal_knee_state):
    """A feedback that cannot get the session lock is a 409 and changes nothing."""
    from main import create_app

    store = BusyStore()
    store.save('busy', new_record('busy', normal_knee_state))
    client = create_app(store).test_client()

    response = client.post('/api/sessions/busy/feedback',
                           json={'drill_id': 'FOOT_TRIPOD', 'pain': 9, 'felt_stable': True})

    assert response.status_code == 409
    assert response.get_json()['error'] == 'Session busy'
    assert store.load('busy')['state']['mode'] == 'NORMAL'

@pytest.mark.api
def test_stored_check_in_is_redacted(client, session_store, sample_check_in):
    """The check-in kept on the session record has contact details removed."""
    sample_check_in['free_text'] = 'stiff, call me on 555-123-4567'

    _, started = _start(client, sample_check_in)

    stored = session_store.load(started['session_id'])['check_in']
    assert '555-123-4567' not in stored['free_text']
    assert '[phone removed]' in stored['free_text']
    assert stored['pain_level'] == 2


@pytest.mark.api
@pytest.mark.integration
def test_outcome_history_tracks_check_ins_and_sessions(client, sample_check_in):
    """A tracked check-in and its completed session show up in the progress report."""
    sample_check_in['profile_id'] = 'user-1'
    sample_check_in['function_level'] = 6
    _, started = _start(client, sample_check_in)

    report = client.get('/api/outcomes/user-1/knee').get_json()
    assert report['check_ins_total'] == 1
    assert report['sessions_total'] == 0
    assert {'FIRST_CHECKIN', 'FIRST_FULL_PLAN'} <= {m['id'] for m in report['milestones']}
    assert report['weekly_summary']['avg_function_level'] == 6
    assert report['insights'][0]['title'] == "Building Your Baseline"

    url = f"/api/sessions/{started['session_id']}/feedback"
    for drill_id in started['state']['plan']:
        data = client.post(url, json={'drill_id': drill_id, 'pain': 1, 'felt_stable': True}).get_json()
    assert data['complete'] is True

    report = client.get('/api/outcomes/user-1/knee').get_json()
    assert report['sessions_total'] == 1
    assert report['weekly_summary']['sessions_completed'] == 1
    assert report['weekly_summary']['drills_completed'] == len(started['state']['plan'])


@pytest.mark.api
def test_blocked_check_in_is_tracked(client, sample_check_in):
    """Red-flag days still count in the mode distribution."""
    sample_check_in['profile_id'] = 'user-2'
    sample_check_in['sensations'] = ['numbness']

    _start(client, sample_check_in)

    summary = client.get('/api/outcomes/user-2/knee').get_json()['weekly_summary']
    assert summary['mode_distribution']['BLOCKED'] == 1
    assert summary['mode_distribution']['NORMAL'] == 0


@pytest.mark.api
def test_outcomes_not_found(client):
    """No history, or an unknown body part, is a 404."""
    assert client.get('/api/outcomes/nobody/knee').status_code == 404
    assert client.get('/api/outcomes/nobody/elbow').status_code == 404


@pytest.mark.api
def test_invalid_profile_id_rejected(client, sample_check_in):
    sample_check_in['profile_id'] = 'not a valid id!'

    response = client.post('/api/checkin', json=sample_check_in)

    assert response.status_code == 400
    assert 'profile_id' in response.get_json()['details']
