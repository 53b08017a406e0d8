"""
Red-Flag Screener

Identifies symptom patterns that should stop the session and route the user
to professional care. Rules live in one ordered table evaluated top-down:
every stop_immediately rule precedes every stop_and_monitor rule, which
precede every caution rule, so the first match is always the most urgent
guidance available.

Each rule is:
    {
        'id': stable rule id,
        'body_parts': None (all body parts) or a tuple of BodyPart,
        'predicate': callable(tags, text) -> bool,
        'flag': SafetyFlag returned on match,
    }

IMPORTANT: this is not a diagnosis. The flags only say when exercise should
stop and professional evaluation is needed.
"""

import re
import logging

from coach_errors import ConfigurationError
from coach_types import BodyPart
from data_sanitization import normalize_symptom_text

logger = logging.getLogger("app.red_flags")

SEVERITY_ORDER = ('stop_immediately', 'stop_and_monitor', 'caution')

LOWER_LIMB = (BodyPart.KNEE, BodyPart.ACHILLES, BodyPart.FOOT)


# ─── PREDICATE BUILDERS ──────────────────────────────────────────────

def _has_any(*tags):
    wanted = frozenset(tags)
    return lambda present, text: bool(wanted & present)


def _has_all(*tags):
    wanted = frozenset(tags)
    return lambda present, text: wanted <= present


def _mentions(*phrases):
    """Word-boundary match of any phrase in normalised free text"""
    pattern = re.compile(r"\b(?:" + "|".join(re.escape(phrase) for phrase in phrases) + r")\b")
    return lambda present, text: bool(text) and pattern.search(text) is not None


def _either(*predicates):
    return lambda present, text: any(predicate(present, text) for predicate in predicates)


def _both(*predicates):
    return lambda present, text: all(predicate(present, text) for predicate in predicates)


def _flag(flag_id, severity, title, description, recommended_action, seek_care_if):
    return {
        'id': flag_id,
        'severity': severity,
        'title': title,
        'description': description,
        'recommended_action': recommended_action,
        'seek_care_if': seek_care_if,
    }


def _rule(flag_id, severity, body_parts, predicate, title, description,
          recommended_action, seek_care_if):
    return {
        'id': flag_id,
        'severity': severity,
        'body_parts': body_parts,
        'predicate': predicate,
        'flag': _flag(flag_id, severity, title, description, recommended_action, seek_care_if),
    }


_SWELLING = _either(
    _has_any('swelling', 'swollen'),
    _mentions('swelling', 'swollen', 'swelled'),
)


# ─── RULE TABLE (most → least urgent) ────────────────────────────────

RED_FLAG_RULES = (
    # stop_immediately
    _rule(
        'CHEST_SYMPTOMS', 'stop_immediately', None,
        _either(
            _has_any('chest_pain', 'chest_pressure', 'shortness_of_breath', 'jaw_pain'),
            _mentions('chest pain', 'chest pressure', 'tight chest', 'chest tightness',
                      'short of breath', 'shortness of breath'),
        ),
        "Pain with Chest Symptoms",
        "Limb or shoulder pain accompanied by chest discomfort or breathlessness",
        "Stop all activity. This requires immediate medical evaluation.",
        "Any combination of pain with chest symptoms - call emergency services",
    ),
    _rule(
        'VISIBLE_DEFORMITY', 'stop_immediately', None,
        _either(
            _has_any('deformity', 'dislocation'),
            _mentions('out of place', 'dislocated', 'deformed', 'unusual angle', 'squared off'),
        ),
        "Visible Deformity",
        "Obvious change in shape or alignment of a joint or limb",
        "Do not try to move or straighten the area. Immobilize and seek emergency care.",
        "Any visible deformity after injury",
    ),
    _rule(
        'ACUTE_TRAUMA', 'stop_immediately', None,
        _either(
            _has_any('acute_trauma', 'pop', 'heard_pop', 'snap', 'tearing_feeling', 'fall', 'kicked_sensation'),
            _mentions('heard a pop', 'felt a pop', 'popped', 'snapped', 'heard a snap', 'felt a snap',
                      'something tore', 'kicked in the back of', 'i fell', 'had a fall'),
        ),
        "Pop, Snap or Acute Injury",
        "Audible or felt pop or snap, or a fall, at the time of injury",
        "Stop immediately. Apply ice, compress, elevate. Do not try to 'test' the injured area.",
        "Any pop or snap with injury, especially if followed by swelling, weakness or instability",
    ),
    _rule(
        'CALF_PAIN_SWELLING', 'stop_immediately', LOWER_LIMB,
        _either(
            _both(_has_any('calf_pain'), _either(_SWELLING, _has_any('calf_swelling', 'warmth'))),
            _has_any('calf_swelling'),
            _mentions('swollen calf', 'calf swelling', 'calf is swollen'),
        ),
        "Calf Pain with Swelling",
        "Pain and swelling in the calf, especially after injury or immobility",
        "Stop activity. Do not massage the area. Seek medical evaluation promptly.",
        "Any combination of calf pain, swelling, and warmth - this requires urgent evaluation",
    ),
    _rule(
        'INFECTION_SIGNS', 'stop_immediately', None,
        _either(
            _has_any('fever', 'chills', 'red_streaks', 'pus', 'spreading_redness'),
            _mentions('fever', 'chills', 'red streak', 'red streaks', 'pus',
                      'redness spreading', 'spreading redness'),
        ),
        "Signs of Infection",
        "Symptoms suggesting infection in or around a joint",
        "Do not exercise the area. Seek medical care promptly.",
        "Any signs of infection, especially with fever",
    ),
    _rule(
        'SUDDEN_LOSS_OF_FUNCTION', 'stop_immediately', None,
        _either(
            _has_any('cannot_bear_weight', 'cannot_lift_arm', 'sudden_loss_of_function'),
            _mentions("can't put weight", 'cannot put weight', "can't bear weight", 'cannot bear weight',
                      "can't walk", 'cannot walk', "can't lift my arm", 'cannot lift my arm'),
        ),
        "Sudden Loss of Function",
        "Sudden inability to bear weight or use the affected area",
        "Stop immediately. Do not try to 'walk it off' or push through.",
        "You cannot bear weight or use the limb normally",
    ),
    _rule(
        'ACHILLES_TENDON_GAP', 'stop_immediately', (BodyPart.ACHILLES,),
        _either(
            _has_any('tendon_gap'),
            _mentions('gap in the tendon', 'gap in my tendon', 'dip in the tendon', 'dent in the tendon'),
        ),
        "Gap in Tendon",
        "Palpable gap or depression in the Achilles tendon",
        "Do not walk on it. Seek emergency evaluation.",
        "Any palpable gap in the Achilles tendon",
    ),
    _rule(
        'FOOT_CIRCULATION', 'stop_immediately', (BodyPart.FOOT,),
        _either(
            _has_any('cold_foot', 'pale_foot', 'blue_foot', 'discoloration'),
            _mentions('foot is cold', 'cold foot', 'turned blue', 'pale foot', 'foot is pale'),
        ),
        "Circulation Problems",
        "Signs of poor blood flow to the foot",
        "Seek medical evaluation promptly.",
        "Any signs of circulation problems",
    ),
    _rule(
        'NUMBNESS_WEAKNESS', 'stop_immediately', None,
        _either(
            _has_any('numbness', 'numb'),
            _has_all('tingling', 'weakness'),
            _mentions('numb', 'numbness', 'feels dead', 'pins and needles and weak'),
        ),
        "Numbness or Weakness",
        "Sudden numbness, tingling, or weakness in a limb",
        "Stop activity. Note which areas are affected.",
        "Numbness or weakness persists more than a few minutes, or is accompanied by severe pain",
    ),

    # stop_and_monitor
    _rule(
        'JOINT_LOCKING', 'stop_and_monitor', None,
        _either(
            _has_any('locking', 'locked'),
            _mentions('locked', 'locks up', 'locking', "won't straighten", 'stuck bent'),
        ),
        "Joint Locking",
        "Joint gets stuck and cannot move through full range",
        "Gently try to restore motion. Do not force.",
        "Locking happens repeatedly or joint remains locked",
    ),
    _rule(
        'KNEE_GIVING_WAY', 'stop_and_monitor', (BodyPart.KNEE,),
        _either(
            _has_any('giving_way'),
            _mentions('gave way', 'giving way', 'gives way', 'buckled', 'gives out', 'gave out'),
        ),
        "Knee Giving Way",
        "Knee buckles or gives out unexpectedly",
        "Stop activity. Use support (cane, crutch) if needed to walk safely.",
        "Giving way happens more than once, or is accompanied by swelling or pain",
    ),
    _rule(
        'RAPID_SWELLING', 'stop_and_monitor', None,
        _either(
            _has_any('rapid_swelling'),
            _both(_has_any('sudden_onset'), _SWELLING),
            _mentions('swelled up fast', 'swelled up quickly', 'ballooned', 'swelling came on fast'),
        ),
        "Rapid Swelling",
        "Significant swelling that develops within minutes to hours",
        "Apply ice, compress, elevate. Rest the area.",
        "Swelling is severe, doesn't improve with RICE, or is accompanied by significant pain",
    ),

    # caution
    _rule(
        'NIGHT_PAIN_SWELLING', 'caution', None,
        _both(
            _either(_has_any('night_pain'), _mentions('night pain', 'wakes me up', 'pain at night')),
            _SWELLING,
        ),
        "Night Pain with Swelling",
        "Pain that wakes you from sleep together with swelling of the area",
        "Note the pattern. Avoid aggravating activities.",
        "Night pain persists for more than 1-2 weeks or swelling increases",
    ),
    _rule(
        'SHOULDER_RADIATING_NECK', 'caution', (BodyPart.SHOULDER,),
        _either(
            _has_any('radiating', 'neck_pain'),
            _mentions('from my neck', 'down my arm', 'neck pain'),
        ),
        "Pain Radiating from Neck",
        "Shoulder/arm pain that originates from or is accompanied by neck pain",
        "Avoid aggravating positions. Note what changes symptoms.",
        "Radiating symptoms persist or are accompanied by weakness",
    ),
)


def validate_rules(rules=RED_FLAG_RULES):
    """
    Check a rule table before it is used for screening.

    Returns:
        list: Problem descriptions (empty when the table is usable)
    """
    problems = []
    seen = set()
    last_rank = 0
    for rule in rules:
        if rule['id'] in seen:
            problems.append(f"{rule['id']}: duplicate rule id")
        seen.add(rule['id'])

        if rule['severity'] not in SEVERITY_ORDER:
            problems.append(f"{rule['id']}: unknown severity {rule['severity']!r}")
            continue

        rank = SEVERITY_ORDER.index(rule['severity'])
        if rank < last_rank:
            problems.append(f"{rule['id']}: {rule['severity']} rule follows a less urgent rule")
        last_rank = max(last_rank, rank)
    return problems


_rule_problems = validate_rules()
if _rule_problems:
    raise ConfigurationError(f"Red-flag rule table is invalid: {'; '.join(_rule_problems)}")


# ─── SCREENING ───────────────────────────────────────────────────────

def _normalize_tag(tag):
    if not isinstance(tag, str):
        raise TypeError(f"Symptom tags must be strings, got {type(tag).__name__}")
    return re.sub(r'[\s-]+', '_', tag.strip().lower())


def _applies(rule, body_part):
    if body_part is None or rule['body_parts'] is None:
        return True
    return body_part in rule['body_parts']


def rules_for(body_part=None):
    """Return the ids of the rules evaluated for a body part, in priority order"""
    if body_part is not None:
        body_part = BodyPart(body_part)
    return [rule['id'] for rule in RED_FLAG_RULES if _applies(rule, body_part)]


def screen(symptoms, free_text=None, body_part=None):
    """
    Screen symptom tags and optional free text for red flags.

    Args:
        symptoms: Iterable of symptom tags (e.g. 'giving_way', 'numbness')
        free_text: Optional user description, matched by keyword phrases
        body_part: Optional BodyPart. When omitted every rule is evaluated.

    Returns:
        dict: Copy of the first (most urgent) matching SafetyFlag, or None
    """
    if body_part is not None:
        body_part = BodyPart(body_part)

    tags = frozenset(_normalize_tag(tag) for tag in symptoms or ())
    text = normalize_symptom_text(free_text)

    for rule in RED_FLAG_RULES:
        if not _applies(rule, body_part):
            continue
        if rule['predicate'](tags, text):
            part = body_part.value if body_part else 'unspecified body part'
            logger.warning(f"Red flag {rule['id']} ({rule['severity']}) matched for {part}")
            return dict(rule['flag'])

    return None
