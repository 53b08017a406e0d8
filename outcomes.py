"""
Outcome Tracking

Per-profile, per-body-part history of check-ins and completed sessions:
- a baseline from the first week of check-ins
- milestones (consistency, pain reduction, function, progression)
- a weekly summary with pain/function trends and mode distribution
- progress insights for the user

Everything here is a pure function over a plain dict. The API loads the
dict through the session store, applies one update and saves it back.

OutcomeData:
    {
        'body_part': 'knee',
        'start_date': ISO date,
        'check_ins': [CheckInEntry],
        'sessions': [SessionEntry],
        'milestones': [Milestone],
        'baseline': None or {pain_level, function_level, confidence_level, recorded_date},
    }
"""

import uuid
import logging
from datetime import date, timedelta

from coach_types import BodyPart, Mode
from data_sanitization import redact_free_text_fields

logger = logging.getLogger("app.outcomes")

# Check-ins averaged into the baseline, and into the "recent" comparison window
BASELINE_CHECK_INS = 7

# Weekly average change needed before a trend counts as improving/worsening
TREND_MARGIN = 0.5

# Look-back for mode progression and exercise consistency insights
RECENT_DAYS = 14


def outcomes_key(profile_id, body_part):
    return f"{profile_id}:{BodyPart(body_part).value}"


def _today(today):
    return today or date.today()


def _mean(values):
    values = [value for value in values if value is not None]
    if not values:
        return None
    return sum(values) / len(values)


def _rounded(value):
    return None if value is None else round(value, 1)


def _entry_date(entry):
    return date.fromisoformat(entry['date'])


# ─── HISTORY ─────────────────────────────────────────────────────────

def create_outcome_data(body_part, today=None):
    return {
        'body_part': BodyPart(body_part).value,
        'start_date': _today(today).isoformat(),
        'check_ins': [],
        'sessions': [],
        'milestones': [],
        'baseline': None,
    }


def _check_body_part(data, body_part):
    if BodyPart(body_part).value != data['body_part']:
        raise ValueError(f"Outcome history is for {data['body_part']}, not {body_part}")


def add_check_in(data, check_in, mode, today=None):
    """
    Append a check-in and return the updated history.

    Args:
        data: OutcomeData
        check_in: Validated CheckIn dict (function_level is optional)
        mode: Mode assigned for the day, including BLOCKED

    Returns:
        dict: New OutcomeData; the input is not modified
    """
    today = _today(today)
    _check_body_part(data, check_in['body_part'])

    entry = redact_free_text_fields({
        'id': uuid.uuid4().hex,
        'date': today.isoformat(),
        'body_part': data['body_part'],
        'pain_level': check_in['pain_level'],
        'function_level': check_in.get('function_level'),
        'confidence_level': check_in['confidence_level'],
        'sensations': list(check_in.get('sensations') or ()),
        'mode_assigned': Mode(mode).value,
        'notes': check_in.get('free_text'),
    })

    updated = dict(data)
    updated['check_ins'] = data['check_ins'] + [entry]

    if updated['baseline'] is None and len(updated['check_ins']) >= BASELINE_CHECK_INS:
        first_week = updated['check_ins'][:BASELINE_CHECK_INS]
        updated['baseline'] = {
            'pain_level': _mean(c['pain_level'] for c in first_week),
            'function_level': _mean(c['function_level'] for c in first_week),
            'confidence_level': _mean(c['confidence_level'] for c in first_week),
            'recorded_date': today.isoformat(),
        }
        logger.info(f"Baseline recorded for {data['body_part']}")

    return _with_new_milestones(updated, today)


def add_session(data, session, today=None):
    """
    Append a completed session and return the updated history.

    Args:
        session: {'id', 'body_part', 'drills_completed', 'final_mode',
                  'regressed', 'pain_after'}
    """
    today = _today(today)
    _check_body_part(data, session['body_part'])

    entry = {
        'id': session.get('id') or uuid.uuid4().hex,
        'date': today.isoformat(),
        'body_part': data['body_part'],
        'drills_completed': session['drills_completed'],
        'final_mode': Mode(session['final_mode']).value,
        'regressed': bool(session['regressed']),
        'pain_after': session.get('pain_after'),
    }

    updated = dict(data)
    updated['sessions'] = data['sessions'] + [entry]
    return _with_new_milestones(updated, today)


# ─── PROGRESS METRICS ────────────────────────────────────────────────

def consecutive_days(check_ins, today=None):
    """Check-in streak ending today or yesterday (several check-ins on one day count once)"""
    today = _today(today)
    days = sorted({_entry_date(c) for c in check_ins}, reverse=True)
    if not days or (today - days[0]).days > 1:
        return 0

    streak = 1
    for later, earlier in zip(days, days[1:]):
        if (later - earlier).days != 1:
            break
        streak += 1
    return streak


def pain_reduction(data):
    """Baseline pain minus the average of the last week of check-ins (positive is better)"""
    baseline = data.get('baseline')
    if not baseline or len(data['check_ins']) < BASELINE_CHECK_INS:
        return 0.0
    recent = _mean(c['pain_level'] for c in data['check_ins'][-BASELINE_CHECK_INS:])
    return baseline['pain_level'] - recent


def function_improvement(data):
    baseline = data.get('baseline')
    if not baseline or baseline['function_level'] is None \
            or len(data['check_ins']) < BASELINE_CHECK_INS:
        return 0.0
    recent = _mean(c['function_level'] for c in data['check_ins'][-BASELINE_CHECK_INS:])
    if recent is None:
        return 0.0
    return recent - baseline['function_level']


# ─── MILESTONES ──────────────────────────────────────────────────────

def _milestone(milestone_id, milestone_type, title, description, condition):
    return {
        'id': milestone_id,
        'type': milestone_type,
        'title': title,
        'description': description,
        'condition': condition,
    }


MILESTONE_DEFINITIONS = (
    _milestone('FIRST_CHECKIN', 'consistency', "First Check-In",
               "Completed your first daily check-in",
               lambda data, today: len(data['check_ins']) >= 1),
    _milestone('WEEK_STREAK', 'consistency', "Week Warrior",
               "Checked in 7 days in a row",
               lambda data, today: consecutive_days(data['check_ins'], today) >= 7),
    _milestone('MONTH_STREAK', 'consistency', "Monthly Dedication",
               "Checked in 30 days in a row",
               lambda data, today: consecutive_days(data['check_ins'], today) >= 30),
    _milestone('PAIN_DOWN_2', 'pain_reduction', "Pain Reduction",
               "Average pain reduced by 2+ points",
               lambda data, today: pain_reduction(data) >= 2),
    _milestone('PAIN_DOWN_5', 'pain_reduction', "Major Pain Relief",
               "Average pain reduced by 5+ points",
               lambda data, today: pain_reduction(data) >= 5),
    _milestone('FUNCTION_UP_2', 'function_improvement', "Function Boost",
               "Function level improved by 2+ points",
               lambda data, today: function_improvement(data) >= 2),
    _milestone('FIRST_FULL_PLAN', 'movement_unlocked', "Ready to Train",
               "First day assigned the full plan",
               lambda data, today: any(c['mode_assigned'] == Mode.NORMAL.value for c in data['check_ins'])),
    _milestone('TEN_SESSIONS', 'exercise_progression', "Dedicated Practitioner",
               "Completed 10 exercise sessions",
               lambda data, today: len(data['sessions']) >= 10),
    _milestone('FIFTY_SESSIONS', 'exercise_progression', "Exercise Expert",
               "Completed 50 exercise sessions",
               lambda data, today: len(data['sessions']) >= 50),
)


def new_milestones(data, today=None):
    """Milestones whose condition now holds and that were not reached before"""
    today = _today(today)
    reached = {milestone['id'] for milestone in data['milestones']}
    return [
        {
            'id': definition['id'],
            'type': definition['type'],
            'body_part': data['body_part'],
            'achieved_date': today.isoformat(),
            'title': definition['title'],
            'description': definition['description'],
        }
        for definition in MILESTONE_DEFINITIONS
        if definition['id'] not in reached and definition['condition'](data, today)
    ]


def _with_new_milestones(data, today):
    found = new_milestones(data, today)
    if found:
        data['milestones'] = data['milestones'] + found
        for milestone in found:
            logger.info(f"Milestone {milestone['id']} reached for {data['body_part']}")
    return data


# ─── WEEKLY SUMMARY ──────────────────────────────────────────────────

def _trend(current, previous, higher_is_better):
    if current is None or previous is None:
        return 'stable'
    change = current - previous if higher_is_better else previous - current
    if change > TREND_MARGIN:
        return 'improving'
    if change < -TREND_MARGIN:
        return 'worsening'
    return 'stable'


def _within(entries, start, end):
    return [entry for entry in entries if start <= _entry_date(entry) < end]


def weekly_summary(data, today=None):
    """
    Summary of the current Monday-to-Sunday week.

    Trends compare this week's averages with the previous week's; with no
    check-ins last week both trends are 'stable'.

    Returns:
        dict, or None when there are no check-ins this week
    """
    today = _today(today)
    week_start = today - timedelta(days=today.weekday())
    week_end = week_start + timedelta(days=7)
    previous_start = week_start - timedelta(days=7)

    week_check_ins = _within(data['check_ins'], week_start, week_end)
    if not week_check_ins:
        return None
    week_sessions = _within(data['sessions'], week_start, week_end)
    previous_check_ins = _within(data['check_ins'], previous_start, week_start)

    avg_pain = _mean(c['pain_level'] for c in week_check_ins)
    avg_function = _mean(c['function_level'] for c in week_check_ins)
    avg_confidence = _mean(c['confidence_level'] for c in week_check_ins)

    pain_trend = function_trend = 'stable'
    if previous_check_ins:
        pain_trend = _trend(avg_pain, _mean(c['pain_level'] for c in previous_check_ins), False)
        function_trend = _trend(avg_function, _mean(c['function_level'] for c in previous_check_ins), True)

    return {
        'week_start': week_start.isoformat(),
        'body_part': data['body_part'],
        'avg_pain_level': _rounded(avg_pain),
        'avg_function_level': _rounded(avg_function),
        'avg_confidence_level': _rounded(avg_confidence),
        'pain_trend': pain_trend,
        'function_trend': function_trend,
        'check_ins_completed': len(week_check_ins),
        'sessions_completed': len(week_sessions),
        'drills_completed': sum(s['drills_completed'] for s in week_sessions),
        'mode_distribution': {
            mode.value: sum(1 for c in week_check_ins if c['mode_assigned'] == mode.value)
            for mode in Mode
        },
    }


# ─── INSIGHTS ────────────────────────────────────────────────────────

def _insight(insight_type, title, message, metric=None, value=None):
    insight = {'type': insight_type, 'title': title, 'message': message}
    if metric is not None:
        insight['metric'] = metric
        insight['value'] = value
    return insight


def insights(data, today=None):
    """Progress insights, each typed 'positive', 'neutral' or 'attention'"""
    today = _today(today)
    check_ins = data['check_ins']

    if len(check_ins) < 3:
        return [_insight(
            'neutral', "Building Your Baseline",
            "Keep checking in daily to establish your baseline and track progress."
        )]

    found = []

    streak = consecutive_days(check_ins, today)
    if streak >= 7:
        found.append(_insight(
            'positive', "Great Consistency!",
            f"You've checked in {streak} days in a row. Consistency is key to progress.",
            'streak', streak
        ))

    if data.get('baseline'):
        reduction = pain_reduction(data)
        if reduction >= 2:
            found.append(_insight(
                'positive', "Pain Improving",
                f"Your average pain has decreased by {reduction:.1f} points since starting.",
                'pain_reduction', round(reduction, 1)
            ))
        elif reduction < -1:
            found.append(_insight(
                'attention', "Pain Increasing",
                "Your pain levels have been higher recently. Consider reducing activity intensity.",
                'pain_increase', round(abs(reduction), 1)
            ))

        improvement = function_improvement(data)
        if improvement >= 2:
            found.append(_insight(
                'positive', "Function Improving",
                f"Your function level has improved by {improvement:.1f} points.",
                'function_improvement', round(improvement, 1)
            ))

    recent = check_ins[-RECENT_DAYS:]
    full_plan_days = sum(1 for c in recent if c['mode_assigned'] == Mode.NORMAL.value)
    if full_plan_days > 0 and full_plan_days >= len(recent) - full_plan_days:
        found.append(_insight(
            'positive', "High Readiness",
            "You've been on the full plan on most recent days. Your body is responding well!"
        ))

    if data['sessions']:
        cutoff = today - timedelta(days=RECENT_DAYS)
        recent_sessions = [s for s in data['sessions'] if _entry_date(s) >= cutoff]
        if len(recent_sessions) >= 10:
            found.append(_insight(
                'positive', "Active Rehab",
                f"You've completed {len(recent_sessions)} exercise sessions in the last 2 weeks."
            ))
        elif len(recent_sessions) < 3 and len(data['sessions']) >= 5:
            found.append(_insight(
                'attention', "Exercise Reminder",
                "Your exercise frequency has dropped. Try to maintain consistency for best results."
            ))

    return found


def progress_report(data, today=None):
    """Everything the progress screen shows, computed from one history"""
    today = _today(today)
    return {
        'body_part': data['body_part'],
        'start_date': data['start_date'],
        'baseline': data['baseline'],
        'streak': consecutive_days(data['check_ins'], today),
        'check_ins_total': len(data['check_ins']),
        'sessions_total': len(data['sessions']),
        'milestones': data['milestones'],
        'weekly_summary': weekly_summary(data, today),
        'insights': insights(data, today),
    }
