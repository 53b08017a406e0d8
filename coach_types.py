"""
Shared enumerations for the coach engine.

Both enums subclass str so that values drop straight into JSON payloads and
compare equal to their plain-string form ('knee', 'RESET').
"""

from enum import Enum


class BodyPart(str, Enum):
    """Rehabilitation targets (closed set)"""
    KNEE = 'knee'
    ACHILLES = 'achilles'
    SHOULDER = 'shoulder'
    FOOT = 'foot'


class Mode(str, Enum):
    """Session safety/intensity tier"""
    NORMAL = 'NORMAL'        # Full plan
    REGRESSED = 'REGRESSED'  # Reduced-intensity plan
    RESET = 'RESET'          # Minimal/safety plan
    BLOCKED = 'BLOCKED'      # Red flag: escalate, no session


# Higher = more intense. BLOCKED is not on the scale.
MODE_INTENSITY = {
    Mode.NORMAL: 2,
    Mode.REGRESSED: 1,
    Mode.RESET: 0,
}

# Modes the session controller accepts
SESSION_MODES = (Mode.NORMAL, Mode.REGRESSED, Mode.RESET)


def most_conservative(*modes):
    """Return the least intense of the given session modes"""
    return Mode(min(modes, key=lambda mode: MODE_INTENSITY[Mode(mode)]))
