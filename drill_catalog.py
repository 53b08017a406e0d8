"""
Drill Catalog - static drill reference data and tier plans per body part.

Structure:
    DRILL_CATALOG[body_part] = {
        'drills': {drill_id: drill},
        'plans': {Mode.NORMAL: [...], Mode.REGRESSED: [...], Mode.RESET: [...]},
    }

Drill ids are unique within a body part only (ANKLE_CIRCLES exists for both
achilles and foot), so every lookup is keyed by (body_part, drill_id).
"""

import copy
import logging

from coach_errors import UnknownDrillId
from coach_types import BodyPart, Mode, SESSION_MODES

logger = logging.getLogger("app.drill_catalog")


def _drill(drill_id, title, intent, cues, dosage_type, value, sets,
           visual_key, hold_seconds=None, movement_tags=()):
    dosage = {'sets': sets, 'type': dosage_type, 'value': value}
    if hold_seconds is not None:
        dosage['hold_seconds'] = hold_seconds
    return {
        'id': drill_id,
        'title': title,
        'intent': intent,
        'cues': list(cues),
        'dosage': dosage,
        'visual_key': visual_key,
        'movement_tags': list(movement_tags),
    }


def _index(*drills):
    return {drill['id']: drill for drill in drills}


# ─── KNEE ────────────────────────────────────────────────────────────

KNEE_DRILLS = _index(
    _drill('QUAD_SET', "Quad Set", "Wake up VMO without load",
           ["Seated or supine", "Press knee down", "Hold 5s, feel quad tighten"],
           'reps', 10, 3, 'quad_set', hold_seconds=5),
    _drill('HEEL_SLIDES', "Heel Slides", "Gentle ROM without load",
           ["Supine", "Slide heel toward glute", "Control the motion"],
           'reps', 10, 2, 'heel_slides'),
    _drill('FOOT_TRIPOD', "Foot Tripod Activation", "Establish stable base",
           ["Stand on one leg", "Feel big toe, little toe, heel", "Slight knee bend"],
           'time', 30, 3, 'foot_tripod'),
    _drill('GLUTE_BRIDGE_HEEL_DRAG', "Glute Bridge + Heel Drag", "Posterior chain activation",
           ["Bridge up", "Drag heel toward glute", "Keep hips level"],
           'reps', 8, 2, 'glute_bridge_heel_drag'),
    _drill('HAM_QUAD_COCONTRACT', "Ham-Quad Co-contraction", "Joint stability through co-activation",
           ["Seated, foot on floor", "Push down AND pull back", "Feel both muscle groups"],
           'reps', 10, 3, 'ham_quad_cocontract', hold_seconds=5),
    _drill('WALL_BOW', "Wall Bow", "Controlled partial squat",
           ["Back against wall", "Slide down to 30-45°", "Hold, then return"],
           'reps', 8, 3, 'wall_bow', hold_seconds=5,
           movement_tags=['partial_squat']),
    _drill('SPANISH_SQUAT_MICRO', "Spanish Squat (Micro 35-45°)", "Load mid-arc without shear",
           ["Band behind knees", "Only 35-45° range", "Slow; no sharp tibial pain"],
           'reps', 8, 3, 'spanish_squat_micro',
           movement_tags=['deep_squat', 'partial_squat']),
    _drill('STEP_DOWN_SUPPORTED', "Supported Step-Down (Shallow)", "Eccentric control without collapse",
           ["Hold rail/stick", "3s down; brief pause", "Keep heel-drag tension"],
           'reps', 6, 2, 'stepdown_supported',
           movement_tags=['stairs_down', 'landing', 'partial_squat']),
)

KNEE_PLANS = {
    Mode.NORMAL: ['FOOT_TRIPOD', 'GLUTE_BRIDGE_HEEL_DRAG', 'HAM_QUAD_COCONTRACT',
                  'WALL_BOW', 'SPANISH_SQUAT_MICRO', 'STEP_DOWN_SUPPORTED'],
    Mode.REGRESSED: ['FOOT_TRIPOD', 'GLUTE_BRIDGE_HEEL_DRAG', 'HAM_QUAD_COCONTRACT', 'WALL_BOW'],
    Mode.RESET: ['QUAD_SET', 'HEEL_SLIDES', 'FOOT_TRIPOD', 'GLUTE_BRIDGE_HEEL_DRAG'],
}

# ─── ACHILLES ────────────────────────────────────────────────────────

ACHILLES_DRILLS = _index(
    _drill('ISOMETRIC_HOLD', "Isometric Calf Hold", "Pain-free tendon loading",
           ["Stand on edge of step", "Rise to mid-range", "Hold steady - no bouncing", "Both legs"],
           'time', 45, 5, 'isometric_hold'),
    _drill('SEATED_HEEL_RAISE', "Seated Heel Raise", "Soleus-focused loading",
           ["Sit with knees bent 90°", "Weight on thighs if needed", "Slow and controlled", "Full range"],
           'reps', 15, 3, 'seated_heel_raise'),
    _drill('STANDING_HEEL_RAISE', "Standing Heel Raise (Bilateral)", "Gastrocnemius loading",
           ["Straight knees", "Rise as high as possible", "3 seconds up, 3 seconds down", "Both legs"],
           'reps', 15, 3, 'standing_heel_raise'),
    _drill('ECCENTRIC_HEEL_DROP', "Eccentric Heel Drop", "Tendon remodeling",
           ["Rise on both legs", "Shift to affected leg", "Lower slowly (3-5 sec)", "Use other leg to rise"],
           'reps', 15, 3, 'eccentric_heel_drop'),
    _drill('SINGLE_LEG_HEEL_RAISE', "Single Leg Heel Raise", "Full strength loading",
           ["One leg only", "Full range of motion", "Control the lowering", "Hold rail for balance only"],
           'reps', 12, 3, 'single_leg_heel_raise'),
    _drill('SOLEUS_RAISE', "Bent Knee Heel Raise", "Soleus isolation",
           ["Knees bent 20-30°", "Rise onto toes", "Keep knees bent throughout", "Slow tempo"],
           'reps', 15, 3, 'soleus_raise'),
    _drill('CALF_STRETCH_STRAIGHT', "Gastrocnemius Stretch", "Maintain flexibility",
           ["Back leg straight", "Heel down", "Lean into wall", "Gentle stretch only"],
           'time', 30, 3, 'calf_stretch_straight'),
    _drill('CALF_STRETCH_BENT', "Soleus Stretch", "Deep calf flexibility",
           ["Back knee bent", "Heel down", "Lean forward", "Feel it lower in calf"],
           'time', 30, 3, 'calf_stretch_bent'),
    _drill('ANKLE_CIRCLES', "Ankle Circles", "Mobility and blood flow",
           ["Seated or standing", "Large circles", "Both directions", "Smooth movement"],
           'reps', 10, 2, 'ankle_circles'),
    _drill('TOE_WALKS', "Toe Walks", "Functional calf activation",
           ["Walk on toes", "Stay as high as possible", "Short steps", "20-30 meters"],
           'time', 30, 2, 'toe_walks'),
    _drill('HEEL_WALKS', "Heel Walks", "Anterior tibialis activation",
           ["Walk on heels", "Toes up", "Short steps", "20-30 meters"],
           'time', 30, 2, 'heel_walks'),
)

ACHILLES_PLANS = {
    Mode.NORMAL: ['ANKLE_CIRCLES', 'STANDING_HEEL_RAISE', 'SOLEUS_RAISE', 'ECCENTRIC_HEEL_DROP',
                  'SINGLE_LEG_HEEL_RAISE', 'CALF_STRETCH_STRAIGHT', 'CALF_STRETCH_BENT'],
    Mode.REGRESSED: ['ANKLE_CIRCLES', 'TOE_WALKS', 'STANDING_HEEL_RAISE', 'CALF_STRETCH_STRAIGHT'],
    Mode.RESET: ['ANKLE_CIRCLES', 'ISOMETRIC_HOLD', 'SEATED_HEEL_RAISE', 'CALF_STRETCH_BENT'],
}

# ─── SHOULDER ────────────────────────────────────────────────────────

SHOULDER_DRILLS = _index(
    _drill('PENDULUMS', "Pendulum Swings", "Gentle joint mobilization",
           ["Lean forward, arm hanging", "Small circles", "Let gravity do the work", "Relax the shoulder"],
           'time', 60, 2, 'pendulums'),
    _drill('PASSIVE_FLEXION', "Passive Flexion (Supine)", "Restore overhead mobility",
           ["Lie on back", "Use other arm to lift", "Go to comfortable end range", "Relax and breathe"],
           'reps', 10, 3, 'passive_flexion', hold_seconds=5),
    _drill('PASSIVE_ER', "Passive External Rotation", "Restore rotation mobility",
           ["Elbow at side, bent 90°", "Use stick or other arm", "Rotate outward gently", "Don't force"],
           'reps', 10, 3, 'passive_er', hold_seconds=5),
    _drill('WALL_SLIDES', "Wall Slides", "Controlled overhead movement",
           ["Back against wall", "Arms in 'W' position", "Slide up to 'Y'", "Keep contact with wall"],
           'reps', 10, 3, 'wall_slides'),
    _drill('SCAPULAR_SQUEEZE', "Scapular Squeeze", "Scapular stability",
           ["Squeeze shoulder blades together", "Hold 5 seconds", "Don't shrug", "Chest up"],
           'reps', 10, 3, 'scapular_squeeze', hold_seconds=5),
    _drill('PRONE_Y', "Prone Y Raise", "Lower trap activation",
           ["Lie face down", "Arms in Y position", "Lift thumbs to ceiling", "Squeeze shoulder blades"],
           'reps', 10, 3, 'prone_y', hold_seconds=3),
    _drill('PRONE_T', "Prone T Raise", "Mid trap activation",
           ["Lie face down", "Arms out to sides (T)", "Lift thumbs to ceiling", "Squeeze shoulder blades"],
           'reps', 10, 3, 'prone_t', hold_seconds=3),
    _drill('PRONE_W', "Prone W Raise", "Rotator cuff activation",
           ["Lie face down", "Elbows bent, arms in W", "Lift and rotate thumbs up", "External rotation focus"],
           'reps', 10, 3, 'prone_w', hold_seconds=3),
    _drill('SIDELYING_ER', "Sidelying External Rotation", "Rotator cuff strengthening",
           ["Lie on unaffected side", "Elbow at side, bent 90°", "Rotate forearm up", "Control the lowering"],
           'reps', 15, 3, 'sidelying_er'),
    _drill('BAND_PULL_APART', "Band Pull Apart", "Posterior shoulder strength",
           ["Hold band at shoulder width", "Arms straight in front", "Pull apart to chest",
            "Squeeze shoulder blades"],
           'reps', 15, 3, 'band_pull_apart'),
    _drill('FACE_PULL', "Face Pull", "External rotator and trap strength",
           ["Pull band to face", "Elbows high", "Rotate hands back", "Squeeze at end"],
           'reps', 15, 3, 'face_pull'),
    _drill('WALL_ANGELS', "Wall Angels", "Overhead mobility with control",
           ["Back flat against wall", "Arms in 'goal post' position", "Slide up and down",
            "Keep contact with wall"],
           'reps', 10, 3, 'wall_angels'),
    _drill('SLEEPER_STRETCH', "Sleeper Stretch", "Internal rotation mobility",
           ["Lie on affected side", "Elbow at 90°, arm forward", "Gently push hand down",
            "Stop at first resistance"],
           'time', 30, 3, 'sleeper_stretch'),
    _drill('CROSS_BODY_STRETCH', "Cross Body Stretch", "Posterior capsule stretch",
           ["Pull arm across body", "Use other hand above elbow", "Keep shoulder down", "Gentle stretch"],
           'time', 30, 3, 'cross_body_stretch'),
    _drill('DOORWAY_STRETCH', "Doorway Pec Stretch", "Anterior shoulder/pec flexibility",
           ["Forearm on door frame", "Step through gently", "Feel stretch in chest/front shoulder",
            "Try different arm heights"],
           'time', 30, 3, 'doorway_stretch'),
)

SHOULDER_PLANS = {
    Mode.NORMAL: ['WALL_SLIDES', 'SCAPULAR_SQUEEZE', 'PRONE_Y', 'PRONE_T', 'PRONE_W',
                  'SIDELYING_ER', 'BAND_PULL_APART', 'FACE_PULL', 'SLEEPER_STRETCH',
                  'CROSS_BODY_STRETCH'],
    Mode.REGRESSED: ['PENDULUMS', 'WALL_SLIDES', 'BAND_PULL_APART', 'DOORWAY_STRETCH'],
    Mode.RESET: ['PENDULUMS', 'PASSIVE_FLEXION', 'PASSIVE_ER', 'SCAPULAR_SQUEEZE',
                 'CROSS_BODY_STRETCH'],
}

# ─── FOOT ────────────────────────────────────────────────────────────

FOOT_DRILLS = _index(
    _drill('TOE_YOGA', "Toe Yoga", "Improve toe independence and control",
           ["Lift big toe, keep others down", "Then reverse", "Slow and controlled", "Both feet"],
           'reps', 10, 3, 'toe_yoga'),
    _drill('FOOT_DOMING', "Foot Doming (Short Foot)", "Activate intrinsic foot muscles",
           ["Seated or standing", "Draw arch up without curling toes", "Feel arch lift", "Hold 5 seconds"],
           'reps', 10, 3, 'foot_doming', hold_seconds=5),
    _drill('TOWEL_SCRUNCHES', "Towel Scrunches", "Strengthen toe flexors",
           ["Towel flat on floor", "Scrunch toward you with toes", "Release and repeat", "Full range"],
           'reps', 15, 3, 'towel_scrunches'),
    _drill('MARBLE_PICKUPS', "Marble Pickups", "Fine motor control and grip strength",
           ["Pick up marbles with toes", "Transfer to container", "Use all toes", "Both feet"],
           'reps', 10, 2, 'marble_pickups'),
    _drill('PLANTAR_STRETCH', "Plantar Fascia Stretch", "Lengthen plantar fascia",
           ["Pull toes back toward shin", "Feel stretch along arch", "Gentle pressure", "Hold 30 seconds"],
           'time', 30, 3, 'plantar_stretch'),
    _drill('CALF_STRETCH_WALL', "Calf Stretch (Wall)", "Lengthen gastrocnemius",
           ["Hands on wall", "Back leg straight, heel down", "Lean forward", "Feel calf stretch"],
           'time', 30, 3, 'calf_stretch_wall'),
    _drill('FROZEN_BOTTLE_ROLL', "Frozen Bottle Roll", "Massage and reduce inflammation",
           ["Frozen water bottle under foot", "Roll from heel to ball", "Moderate pressure", "2-3 minutes"],
           'time', 120, 1, 'frozen_bottle_roll'),
    _drill('BALL_ROLL', "Ball Roll (Lacrosse/Golf Ball)", "Release plantar fascia tension",
           ["Ball under foot", "Roll along arch", "Pause on tender spots", "Moderate pressure"],
           'time', 60, 2, 'ball_roll'),
    _drill('TOE_SPREADS', "Toe Spreads", "Improve toe mobility and spacing",
           ["Spread toes as wide as possible", "Hold 5 seconds", "Relax and repeat",
            "Use toe spacers if helpful"],
           'reps', 10, 3, 'toe_spreads', hold_seconds=5),
    _drill('HEEL_RAISES_BILATERAL', "Heel Raises (Both Feet)", "Calf and foot strength",
           ["Rise onto toes", "Full height", "Slow lower", "Both feet together"],
           'reps', 15, 3, 'heel_raises_bilateral'),
    _drill('HEEL_RAISES_SINGLE', "Single Leg Heel Raise", "Unilateral calf/foot strength",
           ["One foot only", "Full range", "Control the lowering", "Hold rail for balance"],
           'reps', 12, 3, 'heel_raises_single'),
    _drill('TOE_WALKS', "Toe Walks", "Forefoot strength and balance",
           ["Walk on toes", "Stay as high as possible", "Short steps", "20-30 meters"],
           'time', 30, 2, 'toe_walks'),
    _drill('HEEL_WALKS', "Heel Walks", "Anterior tibialis activation",
           ["Walk on heels", "Toes up", "Short steps", "20-30 meters"],
           'time', 30, 2, 'heel_walks'),
    _drill('ARCH_LIFTS', "Arch Lifts", "Strengthen arch muscles",
           ["Standing, feet flat", "Lift arch without curling toes", "Keep toes relaxed", "Hold 3 seconds"],
           'reps', 10, 3, 'arch_lifts', hold_seconds=3),
    _drill('ANKLE_CIRCLES', "Ankle Circles", "Mobility and blood flow",
           ["Seated or lying", "Large circles", "Both directions", "Smooth movement"],
           'reps', 10, 2, 'ankle_circles'),
)

FOOT_PLANS = {
    Mode.NORMAL: ['ANKLE_CIRCLES', 'PLANTAR_STRETCH', 'CALF_STRETCH_WALL', 'FOOT_DOMING',
                  'TOE_YOGA', 'TOWEL_SCRUNCHES', 'ARCH_LIFTS', 'HEEL_RAISES_BILATERAL',
                  'HEEL_RAISES_SINGLE', 'TOE_WALKS', 'HEEL_WALKS'],
    Mode.REGRESSED: ['ANKLE_CIRCLES', 'PLANTAR_STRETCH', 'TOE_WALKS', 'HEEL_RAISES_BILATERAL'],
    Mode.RESET: ['ANKLE_CIRCLES', 'PLANTAR_STRETCH', 'BALL_ROLL', 'TOE_SPREADS', 'FOOT_DOMING'],
}


DRILL_CATALOG = {
    BodyPart.KNEE: {'drills': KNEE_DRILLS, 'plans': KNEE_PLANS},
    BodyPart.ACHILLES: {'drills': ACHILLES_DRILLS, 'plans': ACHILLES_PLANS},
    BodyPart.SHOULDER: {'drills': SHOULDER_DRILLS, 'plans': SHOULDER_PLANS},
    BodyPart.FOOT: {'drills': FOOT_DRILLS, 'plans': FOOT_PLANS},
}


# ─── LOOKUPS ─────────────────────────────────────────────────────────

def _entry(body_part, catalog):
    try:
        return catalog[BodyPart(body_part)]
    except (ValueError, KeyError):
        raise KeyError(f"No catalog entry for body part {body_part!r}")


def get_drill(body_part, drill_id, catalog=DRILL_CATALOG):
    """
    Look up a drill by id.

    Returns a deep copy; the catalog records are shared reference data.

    Raises:
        UnknownDrillId: drill_id is not in the body part's catalog
    """
    drills = _entry(body_part, catalog)['drills']
    if drill_id not in drills:
        logger.warning(f"Unknown drill requested: {body_part}/{drill_id}")
        raise UnknownDrillId(drill_id, BodyPart(body_part).value)
    return copy.deepcopy(drills[drill_id])


def tier_plan(body_part, mode, catalog=DRILL_CATALOG):
    """Return a fresh copy of the ordered drill plan for a mode"""
    mode = Mode(mode)
    if mode not in SESSION_MODES:
        raise ValueError(f"No drill plan exists for mode {mode.value}")
    return list(_entry(body_part, catalog)['plans'][mode])


def validate_catalog(catalog=DRILL_CATALOG):
    """
    Check a catalog for dangling plan references and missing tiers.

    Returns:
        list: Human-readable problems (empty if the catalog is consistent)
    """
    problems = []
    for body_part in BodyPart:
        entry = catalog.get(body_part)
        if entry is None:
            problems.append(f"{body_part.value}: no catalog entry")
            continue
        drills = entry.get('drills', {})
        plans = entry.get('plans', {})
        for drill_id, drill in drills.items():
            if drill.get('id') != drill_id:
                problems.append(f"{body_part.value}: drill keyed {drill_id} has id {drill.get('id')}")
        for mode in SESSION_MODES:
            plan = plans.get(mode)
            if not plan:
                problems.append(f"{body_part.value}: no {mode.value} plan")
                continue
            for drill_id in plan:
                if drill_id not in drills:
                    problems.append(f"{body_part.value}: {mode.value} plan references unknown drill {drill_id}")
    return problems
