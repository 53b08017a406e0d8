"""
Calibration Analyzer

Turns a user's calibration profile (problem zones with severities) into the
single focus zone for a session, and classifies everyday movements as safe,
caution or avoid against the calibrated problem ranges.

A zone_index that does not resolve in the body part's ROM table is data
corruption: InvalidZoneIndex is raised so the caller can ask the user to
recalibrate rather than silently ignoring the zone.
"""

import math
import numbers
import logging
from typing import Optional

from body_parts import ROM_ZONE_TABLES, MOVEMENT_PATTERNS
from coach_errors import InvalidCalibrationProfile, InvalidZoneIndex
from coach_types import BodyPart, Mode

logger = logging.getLogger("app.calibration")

# Severity at or above which an overlapping movement should be avoided
AVOID_SEVERITY = 3


def _body_part(profile):
    if not isinstance(profile, dict):
        raise InvalidCalibrationProfile("Calibration profile must be a dict")
    try:
        return BodyPart(profile.get('body_part'))
    except ValueError:
        raise InvalidCalibrationProfile(f"Unknown body part {profile.get('body_part')!r}")


def _resolved_zones(profile, rom_tables):
    """Validate every problem zone and pair it with its ROM table entry."""
    body_part = _body_part(profile)
    table = rom_tables.get(body_part)
    if table is None:
        raise InvalidCalibrationProfile(f"No ROM zone table for {body_part.value}")

    problem_zones = profile.get('problem_zones')
    if not isinstance(problem_zones, (list, tuple)):
        raise InvalidCalibrationProfile("problem_zones must be a list")

    resolved = []
    for zone in problem_zones:
        if not isinstance(zone, dict):
            raise InvalidCalibrationProfile(f"Malformed problem zone record: {zone!r}")

        zone_index = zone.get('zone_index')
        if isinstance(zone_index, bool) or not isinstance(zone_index, int) \
                or not 0 <= zone_index < len(table):
            raise InvalidZoneIndex(zone_index, body_part.value)

        severity = zone.get('severity')
        if isinstance(severity, bool) or not isinstance(severity, numbers.Real) \
                or not math.isfinite(severity) or severity < 0:
            raise InvalidCalibrationProfile(
                f"Severity for zone {zone_index} must be a finite number >= 0, got {severity!r}"
            )

        resolved.append((zone_index, severity, table[zone_index]))

    return body_part, resolved


def rank(profile, rom_tables=ROM_ZONE_TABLES) -> Optional[dict]:
    """
    Pick the focus zone of a calibration profile.

    The highest severity wins; equal severities go to the lowest zone_index,
    whatever order the zones were recorded in.

    Args:
        profile: CalibrationProfile dict
        rom_tables: ROM zone tables keyed by BodyPart

    Returns:
        dict: {zone_index, label, severity, start, end}, or None when the
            profile has no problem zones

    Raises:
        InvalidZoneIndex: a zone does not exist in the ROM table
        InvalidCalibrationProfile: unknown body part, negative severity,
            or a malformed record
    """
    body_part, resolved = _resolved_zones(profile, rom_tables)
    if not resolved:
        return None

    zone_index, severity, zone = min(resolved, key=lambda item: (-item[1], item[0]))

    logger.debug(f"Focus zone for {body_part.value}: {zone_index} (severity {severity})")
    return {
        'zone_index': zone_index,
        'label': zone['label'],
        'severity': severity,
        'start': zone['start'],
        'end': zone['end'],
    }


def movement_overlap(movement, profile, rom_tables=ROM_ZONE_TABLES):
    """
    Check a movement pattern's ROM range against the profile's problem zones.

    Ranges are inclusive at both ends, so a movement ending exactly where a
    problem zone starts counts as overlapping.

    Returns:
        dict: {overlaps, severity (max overlapping, 0 if none), zones}
    """
    _, resolved = _resolved_zones(profile, rom_tables)
    move_start, move_end = movement['rom_range']

    zones = []
    max_severity = 0
    for _, severity, zone in resolved:
        if move_start <= zone['end'] and move_end >= zone['start']:
            zones.append(zone)
            max_severity = max(max_severity, severity)

    return {'overlaps': bool(zones), 'severity': max_severity, 'zones': zones}


def classify_movements(profile, patterns=None, rom_tables=ROM_ZONE_TABLES):
    """
    Sort movement patterns into safe / caution / avoid lists of ids.

    Args:
        profile: CalibrationProfile dict
        patterns: Movement patterns to classify (default: the body part's own)

    Returns:
        dict: {'safe': [...], 'caution': [...], 'avoid': [...]}
    """
    if patterns is None:
        patterns = MOVEMENT_PATTERNS[_body_part(profile)]

    result = {'safe': [], 'caution': [], 'avoid': []}
    for movement in patterns:
        overlap = movement_overlap(movement, profile, rom_tables)
        if not overlap['overlaps']:
            result['safe'].append(movement['id'])
        elif overlap['severity'] < AVOID_SEVERITY:
            result['caution'].append(movement['id'])
        else:
            result['avoid'].append(movement['id'])
    return result


def focus_reasoning(summary, mode):
    """Sentence appended to the session reasoning when a focus zone exists"""
    if summary is None:
        return ""
    if Mode(mode) == Mode.NORMAL:
        return f"Working around your {summary['label']} zone."
    return "Protecting your problem range."
