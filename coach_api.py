"""
Rehab Coach API Endpoints
=========================

JSON endpoints that drive a full check-in → session → feedback loop.
The blueprint holds no decision logic: it validates the request, calls the
coach core, and persists the caller-side session record through the
session store registered on the app.

Every load → update → save sequence runs under the store's named lock, so
overlapping requests for one session (or one outcome history) are applied
in turn and a regression to RESET is never overwritten by a stale update.

Coach errors raised by the core are turned into JSON responses by the
error handlers in main.py.
"""

import logging
from datetime import date

from flask import Blueprint, request, jsonify, current_app

from calibration import rank, classify_movements
from coach_types import BodyPart
from data_sanitization import redact_free_text_fields, redact_phi
from drill_catalog import get_drill
from outcomes import add_check_in, add_session, create_outcome_data, outcomes_key, progress_report
from red_flags import screen
from schemas import (
    CalibrationProfileSchema,
    CheckInRequestSchema,
    DrillFeedbackSchema,
    ScreenRequestSchema,
    validate_json
)
from session_controller import (
    advance,
    current_drill,
    is_complete,
    next_index,
    should_rewind,
    start_session
)
from session_store import new_record, new_session_id, touch

logger = logging.getLogger("app.coach_api")

coach_api = Blueprint('coach_api', __name__, url_prefix='/api')


def get_session_store():
    return current_app.extensions['coach_session_store']


def _validation_error(errors):
    return jsonify({'error': 'Validation failed', 'details': errors}), 400


def _session_not_found(session_id):
    logger.info(f"Session not found: {session_id}")
    return jsonify({'error': 'Session not found', 'message': f'No active session {session_id}'}), 404


def _update_outcomes(profile_id, body_part, update):
    """Apply update(data) to a profile's outcome history under its lock"""
    store = get_session_store()
    key = outcomes_key(profile_id, body_part)
    with store.lock(f"outcomes:{key}"):
        data = store.load_outcomes(key) or create_outcome_data(body_part)
        store.save_outcomes(key, update(data))


# ─────────────────────────────────────────────────────────────────────────────
# CALIBRATION & SCREENING
# ─────────────────────────────────────────────────────────────────────────────

@coach_api.route('/calibration/rank', methods=['POST'])
def api_rank_calibration():
    """
    Rank a calibration profile's problem zones

    Request body: CalibrationProfile
    {
        "body_part": "knee",
        "problem_zones": [{"zone_index": 2, "severity": 3}]
    }

    Response:
    {
        "focus_zone": {"zone_index": 2, "label": "...", "severity": 3, ...} | null,
        "movements": {"safe": [...], "caution": [...], "avoid": [...]}
    }

    A zone_index outside the ROM table returns 422 with recalibrate: true.
    """
    is_valid, result = validate_json(CalibrationProfileSchema, request.get_json(silent=True))
    if not is_valid:
        return _validation_error(result)

    focus_zone = rank(result)
    return jsonify({
        'focus_zone': focus_zone,
        'movements': classify_movements(result),
    }), 200


@coach_api.route('/screen', methods=['POST'])
def api_screen():
    """Screen sensations and free text for red flags"""
    is_valid, result = validate_json(ScreenRequestSchema, request.get_json(silent=True))
    if not is_valid:
        return _validation_error(result)

    flag = screen(result['sensations'], result.get('free_text'), result.get('body_part'))
    return jsonify({'flag': flag}), 200


# ─────────────────────────────────────────────────────────────────────────────
# SESSION ENDPOINTS
# ─────────────────────────────────────────────────────────────────────────────

@coach_api.route('/checkin', methods=['POST'])
def api_checkin():
    """
    Start a session from a check-in

    Request body:
    {
        "body_part": "knee",
        "pain_level": 3,
        "confidence_level": 7,
        "function_level": 6,
        "sensations": ["stiff"],
        "free_text": "optional",
        "movement_restrictions": ["deep_squat"],
        "calibration": {optional CalibrationProfile},
        "profile_id": "optional; records the check-in in the outcome history"
    }

    Response (201 when a session starts, 200 when blocked by a red flag):
    {
        "session_id": "..." | null,
        "mode": "NORMAL" | "REGRESSED" | "RESET" | "BLOCKED",
        "flag": SafetyFlag | null,
        "state": CoachState | null,
        "current_index": 0 | null,
        "current_drill": Drill | null,
        "focus_zone": ProblemZoneSummary | null,
        "recalibrate": bool,
        "reasoning": "..."
    }
    """
    is_valid, result = validate_json(CheckInRequestSchema, request.get_json(silent=True))
    if not is_valid:
        return _validation_error(result)

    calibration = result.pop('calibration', None)
    profile_id = result.pop('profile_id', None)
    outcome = start_session(result, calibration)

    if profile_id:
        _update_outcomes(
            profile_id,
            result['body_part'],
            lambda data: add_check_in(data, result, outcome['mode'])
        )

    if outcome['state'] is None:
        logger.warning(f"Check-in for {result['body_part']} blocked by {outcome['flag']['id']}")
        return jsonify({
            'session_id': None,
            'current_index': None,
            'current_drill': None,
            **outcome
        }), 200

    session_id = new_session_id()
    get_session_store().save(session_id, new_record(
        session_id,
        outcome['state'],
        profile_id=profile_id,
        check_in=redact_free_text_fields(result)
    ))
    logger.info(f"Session {session_id} started: {result['body_part']} in {outcome['mode']}")

    return jsonify({
        'session_id': session_id,
        'current_index': 0,
        'current_drill': current_drill(outcome['state'], 0),
        **outcome
    }), 201


@coach_api.route('/sessions/<session_id>', methods=['GET'])
def api_get_session(session_id):
    """Stored session record plus the drill at the current position"""
    record = get_session_store().load(session_id)
    if record is None:
        return _session_not_found(session_id)

    state = record['state']
    index = record['current_index']
    return jsonify({
        **record,
        'complete': is_complete(state, index),
        'current_drill': current_drill(state, index),
    }), 200


@coach_api.route('/sessions/<session_id>/feedback', methods=['POST'])
def api_session_feedback(session_id):
    """
    Record feedback for the current drill and advance the session

    Request body:
    {
        "drill_id": "WALL_BOW",
        "pain": 2,
        "felt_stable": true,
        "notes": "optional"
    }

    Response:
    {
        "state": CoachState,
        "current_index": int,
        "rewound": bool,
        "complete": bool,
        "current_drill": Drill | null
    }
    """
    store = get_session_store()
    if store.load(session_id) is None:
        return _session_not_found(session_id)

    is_valid, result = validate_json(DrillFeedbackSchema, request.get_json(silent=True))
    if not is_valid:
        return _validation_error(result)

    with store.lock(session_id):
        # Re-read under the lock: another request may have advanced the session
        record = store.load(session_id)
        if record is None:
            return _session_not_found(session_id)

        previous = record['state']
        if is_complete(previous, record['current_index']):
            return jsonify({'error': 'Session complete', 'message': 'All drills in this plan are done'}), 409

        nxt = advance(previous, result)
        rewound = should_rewind(previous, nxt)
        index = next_index(previous, nxt, record['current_index'])

        record = touch(record, nxt, index)
        record['feedback_count'] = record.get('feedback_count', 0) + 1
        record['regressed'] = record.get('regressed', False) or rewound
        record['last_feedback'] = {
            'drill_id': result['drill_id'],
            'pain': result['pain'],
            'felt_stable': result['felt_stable'],
            'notes': redact_phi(result.get('notes')),
        }
        store.save(session_id, record)

    if rewound:
        logger.info(f"Session {session_id} regressed to {nxt['mode']}; drill index rewound")

    complete = is_complete(nxt, index)
    if complete and record.get('profile_id'):
        session = {
            'id': session_id,
            'body_part': nxt['body_part'],
            'drills_completed': record['feedback_count'],
            'final_mode': nxt['mode'],
            'regressed': record['regressed'],
            'pain_after': result['pain'],
        }
        _update_outcomes(record['profile_id'], nxt['body_part'], lambda data: add_session(data, session))
        logger.info(f"Session {session_id} complete after {record['feedback_count']} drill(s)")

    return jsonify({
        'state': nxt,
        'current_index': index,
        'rewound': rewound,
        'complete': complete,
        'current_drill': current_drill(nxt, index),
    }), 200


# ─────────────────────────────────────────────────────────────────────────────
# OUTCOME TRACKING
# ─────────────────────────────────────────────────────────────────────────────

@coach_api.route('/outcomes/<profile_id>/<body_part>', methods=['GET'])
def api_get_outcomes(profile_id, body_part):
    """
    Progress report for one profile and body part

    Response:
    {
        "body_part": "knee",
        "baseline": {...} | null,
        "streak": int,
        "milestones": [...],
        "weekly_summary": {...} | null,
        "insights": [...]
    }
    """
    try:
        key = outcomes_key(profile_id, body_part)
    except ValueError:
        return jsonify({'error': 'Unknown body part', 'message': f'{body_part} is not supported'}), 404

    data = get_session_store().load_outcomes(key)
    if data is None:
        return jsonify({'error': 'No outcome history', 'message': f'No check-ins recorded for {body_part}'}), 404

    return jsonify(progress_report(data, date.today())), 200



# ─────────────────────────────────────────────────────────────────────────────
# DRILL CATALOG
# ─────────────────────────────────────────────────────────────────────────────

@coach_api.route('/drills/<body_part>/<drill_id>', methods=['GET'])
def api_get_drill(body_part, drill_id):
    """Drill record for rendering"""
    try:
        part = BodyPart(body_part)
    except ValueError:
        return jsonify({'error': 'Unknown body part', 'message': f'{body_part} is not supported'}), 404

    return jsonify(get_drill(part, drill_id)), 200
