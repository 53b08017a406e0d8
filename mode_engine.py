"""
Mode Assignment Engine

Computes the starting mode for a session from a check-in:

    1. Red-flag screening over sensations and free text. A flag never stops
       the mode computation, but the caller MUST escalate whenever
       assignment['flag'] is not None.
    2. A pain-driven mode and a confidence-driven mode, each taken from an
       ordered (predicate, mode, reason) table. The more conservative of the
       two wins (NORMAL > REGRESSED > RESET).

Usage:
    from mode_engine import assign_mode, effective_mode

    assignment = assign_mode({'body_part': 'knee', 'pain_level': 9,
                              'confidence_level': 5, 'sensations': []})
    assignment['mode']       # 'RESET'
    effective_mode(assignment)
"""

import logging

from coach_config import load_thresholds
from coach_errors import InvalidCheckIn
from coach_types import BodyPart, Mode, most_conservative
from red_flags import screen
from schemas import CheckInSchema, validate_data

logger = logging.getLogger("app.mode_engine")


# ─── THRESHOLD TABLES (first match wins) ─────────────────────────────

PAIN_RULES = (
    (lambda pain, t: pain >= t['pain_reset_at'], Mode.RESET,
     "Pain is very high today, so we start with the reset protocol."),
    (lambda pain, t: pain >= t['pain_regress_at'], Mode.REGRESSED,
     "Pain is elevated today, so the plan is scaled back."),
    (lambda pain, t: True, Mode.NORMAL,
     "Pain is in a workable range."),
)

CONFIDENCE_RULES = (
    (lambda confidence, t: confidence <= t['confidence_reset_at_or_below'], Mode.RESET,
     "Confidence in the joint is very low, so we start with the reset protocol."),
    (lambda confidence, t: confidence <= t['confidence_regress_at_or_below'], Mode.REGRESSED,
     "Confidence is low, so the plan is scaled back."),
    (lambda confidence, t: True, Mode.NORMAL,
     "Confidence is good."),
)


def _first_match(rules, value, thresholds):
    for predicate, mode, reason in rules:
        if predicate(value, thresholds):
            return mode, reason
    # Every table ends in a catch-all rule
    raise AssertionError("threshold table has no catch-all rule")


def assign_mode(check_in, thresholds=None):
    """
    Assign the session's starting mode from a check-in.

    Args:
        check_in: CheckIn dict (body_part, pain_level, confidence_level,
            sensations, optional free_text)
        thresholds: Optional overrides for the default cut points

    Returns:
        dict: {'mode': str, 'flag': SafetyFlag or None, 'reasoning': str}

    Raises:
        InvalidCheckIn: levels outside 0-10, non-integer levels, unknown body
            part or a malformed check-in. Values are never clamped.
    """
    is_valid, result = validate_data(CheckInSchema, check_in)
    if not is_valid:
        logger.info(f"Rejected check-in: {sorted(result)}")
        raise InvalidCheckIn(result)

    thresholds = load_thresholds(thresholds)
    body_part = BodyPart(result['body_part'])

    flag = screen(result['sensations'], result.get('free_text'), body_part)

    pain_mode, pain_reason = _first_match(PAIN_RULES, result['pain_level'], thresholds)
    confidence_mode, confidence_reason = _first_match(
        CONFIDENCE_RULES, result['confidence_level'], thresholds
    )
    mode = most_conservative(pain_mode, confidence_mode)

    if mode == Mode.NORMAL:
        reasoning = "Pain and confidence are both in range. Full plan today."
    else:
        reasoning = " ".join(
            reason for rule_mode, reason in ((pain_mode, pain_reason), (confidence_mode, confidence_reason))
            if rule_mode == mode
        )

    if flag is not None:
        reasoning = f"Safety check: {flag['title']}. {flag['recommended_action']}"

    logger.info(
        f"Assigned {mode.value} for {body_part.value} "
        f"(pain={result['pain_level']}, confidence={result['confidence_level']}, "
        f"flag={flag['id'] if flag else None})"
    )
    return {'mode': mode.value, 'flag': flag, 'reasoning': reasoning}


def effective_mode(assignment):
    """BLOCKED whenever a flag is present, otherwise the computed mode"""
    if assignment.get('flag') is not None:
        return Mode.BLOCKED.value
    return Mode(assignment['mode']).value
