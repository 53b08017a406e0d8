"""
Static per-body-part reference data: ROM zone tables and movement patterns.

Zone order matters. A zone's position in its table is the zone_index stored
in calibration profiles, and earlier zones win severity ties in ranking.
These tables are read-only; the engine receives them as injected defaults.
"""

from coach_types import BodyPart


def _zone(start, end, label, description):
    return {'start': start, 'end': end, 'label': label, 'description': description}


# Knee: degrees of flexion (0 = straight)
KNEE_ROM_ZONES = (
    _zone(0, 15, "Near full extension (0-15°)", "Almost straight"),
    _zone(15, 30, "Early bend (15-30°)", "Slight bend"),
    _zone(30, 45, "Athletic stance start (30-45°)", "Ready position"),
    _zone(45, 60, "Mid athletic stance (45-60°)", "Athletic crouch"),
    _zone(60, 75, "Athletic stance deep (60-75°)", "Deep athletic position"),
    _zone(75, 90, "Right angle (75-90°)", "Seated position"),
    _zone(90, 110, "Past 90° (90-110°)", "Deep seated"),
    _zone(110, 135, "Deep bend (110-135°)", "Deep squat"),
    _zone(135, 160, "Full depth (135°+)", "Full squat/kneeling"),
)

# Achilles: ankle angle (negative = plantarflexion)
ACHILLES_ROM_ZONES = (
    _zone(-50, -30, "Full plantarflexion (-50 to -30°)", "Pointing toes hard"),
    _zone(-30, -15, "Mid plantarflexion (-30 to -15°)", "Toe-off position"),
    _zone(-15, 0, "Slight plantarflexion (-15 to 0°)", "Standing relaxed"),
    _zone(0, 10, "Neutral to slight dorsi (0 to 10°)", "Flat foot standing"),
    _zone(10, 20, "Mid dorsiflexion (10 to 20°)", "Knee over toes"),
    _zone(20, 30, "Deep dorsiflexion (20 to 30°)", "Deep squat ankle"),
    _zone(30, 45, "Max dorsiflexion (30°+)", "Stretched position"),
)

# Shoulder: degrees of elevation
SHOULDER_ROM_ZONES = (
    _zone(0, 30, "Arm at side (0-30°)", "Resting position"),
    _zone(30, 60, "Low raise (30-60°)", "Reaching forward low"),
    _zone(60, 90, "Shoulder height (60-90°)", "Arm parallel to ground"),
    _zone(90, 120, "Above shoulder (90-120°)", "Reaching up"),
    _zone(120, 150, "High overhead (120-150°)", "Reaching high"),
    _zone(150, 180, "Full overhead (150-180°)", "Arm straight up"),
)

# Foot has no joint angle; zones are functional load states in loading order
FOOT_FUNCTIONAL_ZONES = (
    _zone(0, 1, "First steps (morning/after rest)", "Initial loading after being off feet"),
    _zone(1, 2, "Standing (static)", "Weight bearing without movement"),
    _zone(2, 3, "Walking (heel strike)", "Initial contact phase"),
    _zone(3, 4, "Walking (midstance)", "Full weight on foot"),
    _zone(4, 5, "Walking (toe-off)", "Push-off phase"),
    _zone(5, 6, "Running/jogging", "Higher impact loading"),
    _zone(6, 7, "Sprinting/jumping", "Maximum force production"),
    _zone(7, 8, "Barefoot", "Without supportive footwear"),
)

ROM_ZONE_TABLES = {
    BodyPart.KNEE: KNEE_ROM_ZONES,
    BodyPart.ACHILLES: ACHILLES_ROM_ZONES,
    BodyPart.SHOULDER: SHOULDER_ROM_ZONES,
    BodyPart.FOOT: FOOT_FUNCTIONAL_ZONES,
}


def _pattern(pattern_id, name, description, rom_range):
    return {'id': pattern_id, 'name': name, 'description': description, 'rom_range': rom_range}


# Typical knee flexion range used by each movement. Only the knee has
# angle-based patterns, so movement classification is knee-only.
KNEE_MOVEMENT_PATTERNS = (
    _pattern('walking', "Walking", "Normal gait on flat ground", (0, 30)),
    _pattern('running', "Running", "Jogging/running gait", (10, 45)),
    _pattern('sprinting', "Sprinting", "High-speed running", (15, 60)),
    _pattern('stairs_up', "Stairs up", "Climbing stairs", (30, 75)),
    _pattern('stairs_down', "Stairs down", "Descending stairs (eccentric)", (15, 60)),
    _pattern('sitting_down', "Sitting down", "Lowering to a chair", (45, 100)),
    _pattern('standing_up', "Standing up", "Rising from seated", (30, 90)),
    _pattern('athletic_stance', "Athletic stance", "Ready position for sports", (30, 60)),
    _pattern('squatting', "Squatting", "Full squat pattern", (0, 135)),
    _pattern('lunging', "Lunging", "Split stance loading", (30, 100)),
    _pattern('deceleration', "Deceleration", "Slowing down from speed", (20, 70)),
    _pattern('hard_stop', "Hard stop", "Stopping suddenly from speed", (30, 70)),
    _pattern('direction_reversal', "Direction reversal", "Dynamically reversing direction", (30, 60)),
    _pattern('eccentric_to_concentric', "Eccentric-to-concentric transition",
             "Reversing from lowering to pushing up", (30, 60)),
    _pattern('reactive_movement', "Reactive movement", "Unplanned direction changes", (20, 60)),
    _pattern('cutting', "Cutting/pivoting", "Lateral direction changes", (20, 50)),
    _pattern('crossover_cut', "Crossover cut", "Cutting across the body", (25, 55)),
    _pattern('jumping', "Jumping", "Takeoff phase", (30, 70)),
    _pattern('landing', "Landing", "Absorbing impact", (15, 90)),
    _pattern('landing_to_jump', "Landing to immediate jump", "Reactive jumping", (20, 70)),
)

MOVEMENT_PATTERNS = {
    BodyPart.KNEE: KNEE_MOVEMENT_PATTERNS,
    BodyPart.ACHILLES: (),
    BodyPart.SHOULDER: (),
    BodyPart.FOOT: (),
}
