"""
Typed failures for the rehab coach engine.

Every failure in the core is an invalid-input problem (the core does no I/O),
so each one is raised as an explicit exception instead of a silent default.
"""


class CoachError(Exception):
    """Base class for all coach engine errors"""
    pass


class ConfigurationError(CoachError):
    """Threshold configuration is inconsistent or out of range"""
    pass


class InvalidCalibrationProfile(CoachError):
    """Calibration profile is malformed (bad body part, negative severity, bad record)"""
    pass


class InvalidZoneIndex(InvalidCalibrationProfile):
    """
    A problem zone points at a ROM zone that does not exist.

    This is calibration/data corruption. The profile must not be used and the
    user should be asked to recalibrate.
    """

    def __init__(self, zone_index, body_part):
        super().__init__(f"Zone index {zone_index!r} does not exist in the {body_part} ROM table")
        self.zone_index = zone_index
        self.body_part = body_part


class InvalidCheckIn(CoachError):
    """Check-in failed validation (out-of-range levels, unknown body part, bad shape)"""

    def __init__(self, errors):
        super().__init__(f"Invalid check-in: {errors}")
        self.errors = errors


class InvalidFeedback(CoachError):
    """Drill feedback failed validation"""

    def __init__(self, errors):
        super().__init__(f"Invalid drill feedback: {errors}")
        self.errors = errors


class InvalidCoachState(CoachError):
    """Coach state handed back by the caller is malformed"""

    def __init__(self, errors):
        super().__init__(f"Invalid coach state: {errors}")
        self.errors = errors


class UnknownDrillId(CoachError):
    """A plan references a drill that is not in the catalog"""

    def __init__(self, drill_id, body_part):
        super().__init__(f"Unknown drill {drill_id!r} for body part {body_part}")
        self.drill_id = drill_id
        self.body_part = body_part


class SessionBlocked(CoachError):
    """A red flag is active; normal session flow must not continue"""

    def __init__(self, flag=None):
        title = flag.get('title') if flag else 'red flag'
        super().__init__(f"Session blocked by safety flag: {title}")
        self.flag = flag


class SessionBusy(CoachError):
    """Another request holds the session lock; the update was not applied"""

    def __init__(self, name):
        super().__init__(f"Session {name} is being updated by another request")
        self.name = name
