"""
Session Plan Controller

Owns the in-session state machine over NORMAL / REGRESSED / RESET.

CoachState is a plain dict:
    {'body_part': 'knee', 'mode': 'NORMAL', 'plan': [drill_id, ...], 'reasoning': str}

The caller keeps the drill position (current_index) and stores the state
between calls. advance() never mutates its input; it always returns a new
state value. After every advance the caller must move its index with
next_index(): a fresh transition into RESET rewinds to 0, anything else
steps forward by one. Completion is plan exhaustion (is_complete).
"""

import logging

from body_parts import ROM_ZONE_TABLES
from calibration import rank, focus_reasoning
from coach_config import load_thresholds
from coach_errors import InvalidCalibrationProfile, InvalidCoachState, InvalidFeedback, SessionBlocked
from coach_types import BodyPart, Mode
from drill_catalog import DRILL_CATALOG, get_drill, tier_plan
from mode_engine import assign_mode
from schemas import CoachStateSchema, DrillFeedbackSchema, validate_data

logger = logging.getLogger("app.session_controller")

REGRESSION_REASONING = "Pain or instability during drill. Switching to reset protocol."


def _make_state(body_part, mode, plan, reasoning):
    return {
        'body_part': BodyPart(body_part).value,
        'mode': Mode(mode).value,
        'plan': list(plan),
        'reasoning': reasoning,
    }


# ─── SESSION START ───────────────────────────────────────────────────

def init_coach_state(body_part, mode, movement_restrictions=(), catalog=DRILL_CATALOG,
                     thresholds=None, reasoning=""):
    """
    Build the initial CoachState for a mode.

    Drills whose movement_tags intersect the reported restrictions are
    removed. If that leaves fewer than min_plan_length drills, the body
    part's RESET plan is used instead (the mode itself is kept).

    Raises:
        SessionBlocked: mode is BLOCKED
    """
    mode = Mode(mode)
    if mode == Mode.BLOCKED:
        raise SessionBlocked()

    body_part = BodyPart(body_part)
    thresholds = load_thresholds(thresholds)
    plan = tier_plan(body_part, mode, catalog)

    restricted = set(movement_restrictions or ())
    if restricted:
        plan = [
            drill_id for drill_id in plan
            if not restricted & set(get_drill(body_part, drill_id, catalog).get('movement_tags', ()))
        ]
        if len(plan) < thresholds['min_plan_length']:
            logger.info(
                f"Restrictions left {len(plan)} {body_part.value} drill(s); using RESET plan"
            )
            plan = tier_plan(body_part, Mode.RESET, catalog)

    return _make_state(body_part, mode, plan, reasoning)


def start_session(check_in, calibration=None, catalog=DRILL_CATALOG,
                  rom_tables=ROM_ZONE_TABLES, thresholds=None):
    """
    Run mode assignment and build the starting state for a check-in.

    Args:
        check_in: CheckIn dict
        calibration: Optional CalibrationProfile for the same body part

    Returns:
        dict: {
            'mode': assigned mode, or 'BLOCKED' when a red flag is active,
            'flag': SafetyFlag or None,
            'state': CoachState, or None when blocked,
            'focus_zone': ProblemZoneSummary or None,
            'recalibrate': True when the calibration profile is unusable,
            'reasoning': str,
        }
    """
    assignment = assign_mode(check_in, thresholds)

    if assignment['flag'] is not None:
        logger.warning(f"Session start blocked by {assignment['flag']['id']}")
        return {
            'mode': Mode.BLOCKED.value,
            'flag': assignment['flag'],
            'state': None,
            'focus_zone': None,
            'recalibrate': False,
            'reasoning': assignment['reasoning'],
        }

    body_part = BodyPart(check_in['body_part'])
    focus_zone = None
    recalibrate = False

    if calibration is not None:
        try:
            if not isinstance(calibration, dict):
                raise InvalidCalibrationProfile("Calibration profile must be an object")
            if calibration.get('body_part') != body_part.value:
                raise InvalidCalibrationProfile(
                    f"Calibration is for {calibration.get('body_part')!r}, not {body_part.value}"
                )
            focus_zone = rank(calibration, rom_tables)
        except InvalidCalibrationProfile as e:
            # Unusable profile: start without a focus zone and ask for recalibration
            logger.warning(f"Calibration profile rejected for {body_part.value}: {e}")
            recalibrate = True

    reasoning = assignment['reasoning']
    focus_sentence = focus_reasoning(focus_zone, assignment['mode'])
    if focus_sentence:
        reasoning = f"{reasoning} {focus_sentence}"

    state = init_coach_state(
        body_part,
        assignment['mode'],
        check_in.get('movement_restrictions') or (),
        catalog,
        thresholds,
        reasoning,
    )

    return {
        'mode': assignment['mode'],
        'flag': None,
        'state': state,
        'focus_zone': focus_zone,
        'recalibrate': recalibrate,
        'reasoning': reasoning,
    }


# ─── IN-SESSION ADJUSTMENT ───────────────────────────────────────────

def advance(state, feedback, catalog=DRILL_CATALOG, thresholds=None):
    """
    Produce the next CoachState from one drill's feedback.

    Regression trigger: pain >= session_pain_stop, or felt_stable is False.
    On trigger the mode becomes RESET and the plan is replaced by the body
    part's canonical RESET plan (repeated triggers in RESET keep that same
    plan). Without a trigger mode and plan are returned unchanged.

    Raises:
        InvalidCoachState: malformed state
        SessionBlocked: state is BLOCKED
        InvalidFeedback: pain outside 0-10, non-boolean felt_stable, etc.
    """
    is_valid, current = validate_data(CoachStateSchema, state)
    if not is_valid:
        raise InvalidCoachState(current)

    if current['mode'] == Mode.BLOCKED.value:
        raise SessionBlocked(state.get('flag'))

    is_valid, fb = validate_data(DrillFeedbackSchema, feedback)
    if not is_valid:
        raise InvalidFeedback(fb)

    thresholds = load_thresholds(thresholds)

    if fb['pain'] >= thresholds['session_pain_stop'] or not fb['felt_stable']:
        logger.warning(
            f"Regression to RESET on {current['body_part']}/{fb['drill_id']} "
            f"(pain={fb['pain']}, felt_stable={fb['felt_stable']}, from={current['mode']})"
        )
        return _make_state(
            current['body_part'],
            Mode.RESET,
            tier_plan(current['body_part'], Mode.RESET, catalog),
            REGRESSION_REASONING,
        )

    return _make_state(current['body_part'], current['mode'], current['plan'], current['reasoning'])


# ─── CALLER CONTRACT ─────────────────────────────────────────────────

def should_rewind(previous, nxt):
    """True only on a fresh transition into RESET"""
    return nxt['mode'] == Mode.RESET.value and previous['mode'] != Mode.RESET.value


def next_index(previous, nxt, current_index):
    """Drill position to use after advance(previous, ...) returned nxt"""
    if should_rewind(previous, nxt):
        return 0
    return current_index + 1


def is_complete(state, index):
    return index >= len(state['plan'])


def current_drill(state, index, catalog=DRILL_CATALOG):
    """
    Drill record at a plan position, or None once the plan is exhausted.

    Raises:
        UnknownDrillId: the plan entry is not in the catalog (state is untouched)
    """
    if is_complete(state, index):
        return None
    return get_drill(state['body_part'], state['plan'][index], catalog)
