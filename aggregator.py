"""
Time-weighted focus and productivity statistics.

Everything here is a pure function of the sessions and weights passed in.
A session without timeline segments counts as a single segment covering
its whole duration in its own category.
"""
import datetime as dt
from collections import defaultdict
from typing import Iterable

from config import ScoreWeights
from models import DailySummary, Session, SessionMetrics, TimelineSegment, WeekSummary
from paths import iso_week_of, week_bounds

BUCKETS = ("work", "learning", "communication", "personal", "idle", "other")
FOCUS_BUCKETS = ("work", "learning")
DISTRACTION_BUCKETS = ("personal", "idle", "other")

CATEGORY_ALIASES = {
    "work": "work",
    "learning": "learning",
    "research": "learning",
    "communication": "communication",
    "meeting": "communication",
    "personal": "personal",
    "idle": "idle",
    "break": "idle",
}


def normalize_category(raw: str) -> str:
    """Map a raw category label onto one of BUCKETS."""
    return CATEGORY_ALIASES.get((raw or "").strip().lower(), "other")


def category_label(raw: str) -> str:
    label = (raw or "").strip().lower()
    return label or "other"


def percent(part: int, whole: int) -> int:
    """Integer percentage rounded half-up, clamped to [0, 100]."""
    if whole <= 0:
        return 0
    value = (200 * part + whole) // (2 * whole)
    return min(max(value, 0), 100)


def effective_segments(session: Session) -> list[tuple[str, int]]:
    """(raw category, minutes) pairs for a session."""
    if session.segments:
        return [(seg.category, seg.minutes) for seg in session.segments]
    return [(session.category, session.duration_minutes)]


def bucket_minutes(pairs: Iterable[tuple[str, int]]) -> dict[str, int]:
    totals = {bucket: 0 for bucket in BUCKETS}
    for category, minutes in pairs:
        if minutes > 0:
            totals[normalize_category(category)] += minutes
    return totals


def category_minutes(pairs: Iterable[tuple[str, int]]) -> dict[str, int]:
    totals: defaultdict[str, int] = defaultdict(int)
    for category, minutes in pairs:
        if minutes > 0:
            totals[category_label(category)] += minutes
    return dict(sorted(totals.items()))


def top_categories(minutes: dict[str, int], limit: int = 5) -> list[str]:
    """Category names by total minutes, ties broken by name."""
    ranked = sorted(minutes.items(), key=lambda item: (-item[1], item[0]))
    return [name for name, _ in ranked[:limit]]


def focus_ratio(buckets: dict[str, int]) -> int:
    total = sum(buckets.values())
    return percent(sum(buckets[b] for b in FOCUS_BUCKETS), total)


def effort_score(tracked_minutes: int, target_minutes: int) -> int:
    if tracked_minutes <= 0 or target_minutes <= 0:
        return 0
    return percent(tracked_minutes, target_minutes)


def productivity_score(focus: int, effort: int, weights: ScoreWeights) -> int:
    total_weight = max(weights.focus_weight + weights.effort_weight, 1)
    weighted = focus * weights.focus_weight + effort * weights.effort_weight
    return (2 * weighted + total_weight) // (2 * total_weight)


def score_segments(segments: Iterable[TimelineSegment], weights: ScoreWeights = None,
                   target_minutes: int = None) -> dict:
    """
    Day-level scores for a set of timeline segments.

    Returns focus_score, effort_score, productivity_score, tracked_minutes
    and state ('no-data' when there is nothing to measure).
    """
    return _score_pairs([(seg.category, seg.minutes) for seg in segments], weights, target_minutes)


def _score_pairs(pairs: list[tuple[str, int]], weights: ScoreWeights = None,
                 target_minutes: int = None) -> dict:
    weights = weights or ScoreWeights()
    target = target_minutes or weights.daily_target_minutes
    buckets = bucket_minutes(pairs)
    tracked = sum(buckets.values())
    if tracked == 0:
        return {"focus_score": 0, "effort_score": 0, "productivity_score": 0,
                "tracked_minutes": 0, "state": "no-data"}

    focus = focus_ratio(buckets)
    effort = effort_score(tracked, target)
    return {
        "focus_score": focus,
        "effort_score": effort,
        "productivity_score": productivity_score(focus, effort, weights),
        "tracked_minutes": tracked,
        "state": "ok",
    }


def session_metrics(session: Session) -> SessionMetrics:
    """Context switches and fragmentation for one session."""
    count = len(session.segments)
    switches = 0
    last = None
    for seg in session.segments:
        category = category_label(seg.category)
        if last is not None and category != last:
            switches += 1
        last = category

    if switches <= 1:
        level = "low"
    elif switches <= 3:
        level = "medium"
    else:
        level = "high"

    return SessionMetrics(
        segment_count=count,
        context_switches=switches,
        avg_segment_minutes=session.duration_minutes // count if count else 0,
        fragmentation_level=level,
    )


def sort_sessions(sessions: Iterable[Session]) -> list[Session]:
    """Deterministic order: date, start time, then id."""
    return sorted(sessions, key=lambda s: (s.date, s.start, s.id))


def summarize_day(day: dt.date, sessions: list[Session], weights: ScoreWeights = None) -> DailySummary:
    weights = weights or ScoreWeights()
    day_sessions = [s for s in sessions if s.date == day]

    pairs = [pair for s in day_sessions for pair in effective_segments(s)]
    scores = _score_pairs(pairs, weights, weights.daily_target_minutes)
    top = top_categories(category_minutes(pairs), weights.top_categories)
    total = sum(s.duration_minutes for s in day_sessions)

    if day_sessions:
        text = (f"{len(day_sessions)} sessions, {total} minutes. "
                f"Focus {scores['focus_score']}%, productivity {scores['productivity_score']}/100.")
        if top:
            text += f" Main categories: {', '.join(top)}."
    else:
        text = "No sessions recorded."

    return DailySummary(
        date=day,
        session_count=len(day_sessions),
        total_minutes=total,
        tracked_minutes=scores["tracked_minutes"],
        focus_score=scores["focus_score"],
        effort_score=scores["effort_score"],
        productivity_score=scores["productivity_score"],
        top_categories=top,
        summary=text,
        state=scores["state"],
    )


def partition_by_week(sessions: Iterable[Session]) -> dict[tuple[int, int], list[Session]]:
    """Group sessions by the ISO week of their date."""
    weeks: defaultdict[tuple[int, int], list[Session]] = defaultdict(list)
    for session in sessions:
        weeks[iso_week_of(session.date)].append(session)
    return {key: sort_sessions(value) for key, value in sorted(weeks.items())}


def summarize_week(iso_year: int, iso_week: int, sessions: list[Session],
                   weights: ScoreWeights = None) -> WeekSummary:
    """WeekSummary over the sessions dated inside the given ISO week."""
    weights = weights or ScoreWeights()
    week_start, week_end = week_bounds(iso_year, iso_week)
    week_sessions = partition_by_week(sessions).get((iso_year, iso_week), [])

    pairs = [pair for s in week_sessions for pair in effective_segments(s)]
    buckets = bucket_minutes(pairs)
    tracked = sum(buckets.values())
    focus_minutes = sum(buckets[b] for b in FOCUS_BUCKETS)
    distraction_minutes = sum(buckets[b] for b in DISTRACTION_BUCKETS)
    categories = category_minutes(pairs)

    total_minutes = sum(s.duration_minutes for s in week_sessions)
    total_sessions = len(week_sessions)
    focus = focus_ratio(buckets)
    effort = effort_score(tracked, weights.weekly_target_minutes)

    return WeekSummary(
        iso_year=iso_year,
        iso_week=iso_week,
        week_start=week_start,
        week_end=week_end,
        total_minutes=total_minutes,
        total_sessions=total_sessions,
        avg_session_minutes=total_minutes // total_sessions if total_sessions else 0,
        tracked_minutes=tracked,
        focus_minutes=focus_minutes,
        distraction_minutes=distraction_minutes,
        communication_minutes=buckets["communication"],
        focus_ratio=focus,
        distraction_ratio=percent(distraction_minutes, tracked),
        focus_score=focus,
        effort_score=effort,
        productivity_score=productivity_score(focus, effort, weights) if tracked else 0,
        focus_weight=weights.focus_weight,
        effort_weight=weights.effort_weight,
        target_minutes=weights.weekly_target_minutes,
        top_categories=top_categories(categories, weights.top_categories),
        category_minutes=categories,
        bucket_minutes=buckets,
        state="ok" if tracked else "no-data",
    )


def week_insights(week: WeekSummary) -> list[str]:
    """Short observations for the weekly note."""
    if week.state == "no-data":
        return []

    insights = []
    if week.focus_ratio >= 70:
        insights.append("Focus was high this week; keep the current rhythm")
    elif week.focus_ratio <= 40:
        insights.append("Focus was low this week; cut down high-distraction activities")
    else:
        insights.append("Focus was moderate; task switching could be reduced")

    if week.productivity_score >= 70:
        insights.append("Productivity score is high; time and focus are well balanced")
    elif week.productivity_score <= 40:
        insights.append("Productivity score is low; watch tracked time and focus share")

    if week.total_minutes < 300:
        insights.append("Little time tracked this week; workload looks light")
    elif week.total_minutes >= 1200:
        insights.append("A lot of time tracked this week; watch for fatigue")

    if week.avg_session_minutes < 20:
        insights.append("Sessions are short on average; work looks fragmented")
    elif week.avg_session_minutes >= 60:
        insights.append("Sessions are long on average; a sign of deep work")

    return insights


def compact_text(text: str, max_len: int = 140) -> str:
    cleaned = " ".join((text or "").split())
    if len(cleaned) <= max_len:
        return cleaned
    return cleaned[:max_len] + "..."
