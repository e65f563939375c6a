"""Derived statistics over a user's log entries.

Every function here is pure: it takes an immutable snapshot of log entries
and returns new values. Functions that depend on "today" accept an explicit
``now``; passing ``None`` reads the wall clock in the server's local zone.
Log timestamps are converted into ``now``'s zone before they are bucketed by
calendar day or hour, so a caller can compute stats for any user's zone by
passing an aware ``now``.
"""

import math
from collections import Counter
from datetime import date, datetime, timedelta, tzinfo
from typing import Optional, Sequence

from .constants import (
    IDEAL_STOOL_TYPE,
    MAX_HEALTH_SCORE,
    STOOL_TYPES,
    STREAK_BONUS_CAP_DAYS,
    STREAK_BONUS_PER_DAY,
    TIME_PERIODS,
    TYPE_DEVIATION_PENALTY,
    WEEKDAY_NAMES,
)
from .models import (
    Insight,
    LogEntry,
    StatsInsights,
    StatsSummary,
    TimePeriodBucket,
    TypeDistributionEntry,
    WeekDay,
    WeeklyActivityDay,
)


def _round_half_up(value: float) -> int:
    # Python's round() is banker's rounding; scores are tuned against half-up.
    return math.floor(value + 0.5)


def _resolve_now(now: Optional[datetime]) -> datetime:
    return now if now is not None else datetime.now().astimezone()


def _to_zone(timestamp: datetime, tz: Optional[tzinfo]) -> datetime:
    """Express a timestamp in ``tz``; naive timestamps are taken as already local."""
    if timestamp.tzinfo is None:
        return timestamp if tz is None else timestamp.replace(tzinfo=tz)
    return timestamp.astimezone(tz)


def _local_day(log: LogEntry, tz: Optional[tzinfo]) -> date:
    return _to_zone(log.occurred_at, tz).date()


# =============================================================================
# Core statistics
# =============================================================================


def calculate_streak(logs: Sequence[LogEntry], now: Optional[datetime] = None) -> int:
    """Count consecutive calendar days with a log, ending today.

    A day without a log today yields 0 even if yesterday had entries.
    """
    if not logs:
        return 0
    now = _resolve_now(now)
    log_days = {_local_day(log, now.tzinfo) for log in logs}

    count = 0
    cursor = now.date()
    while cursor in log_days:
        count += 1
        cursor -= timedelta(days=1)
    return count


def calculate_avg_type(logs: Sequence[LogEntry]) -> Optional[float]:
    """Mean Bristol type, or None when there are no logs."""
    if not logs:
        return None
    return sum(log.type for log in logs) / len(logs)


def calculate_time_period_stats(
    logs: Sequence[LogEntry],
    tz: Optional[tzinfo] = None,
) -> list[TimePeriodBucket]:
    """Distribute logs over the four fixed time-of-day buckets.

    Buckets are always returned in Morning, Afternoon, Evening, Night order.
    """
    hours = Counter(_to_zone(log.occurred_at, tz).hour for log in logs)
    total = len(logs)

    buckets = []
    for label, period_hours, emoji in TIME_PERIODS:
        count = sum(hours[hour] for hour in period_hours)
        percentage = _round_half_up(count / total * 100) if total > 0 else 0
        buckets.append(
            TimePeriodBucket(
                label=label,
                hours=period_hours,
                emoji=emoji,
                count=count,
                percentage=percentage,
            )
        )
    return buckets


def get_best_period(buckets: Sequence[TimePeriodBucket]) -> Optional[TimePeriodBucket]:
    """Return the bucket with the most logs; earlier buckets win ties.

    A zero-count bucket can be returned. Whether that counts as a pattern is
    up to the caller.
    """
    if not buckets:
        return None
    best = buckets[0]
    for bucket in buckets[1:]:
        if bucket.count > best.count:
            best = bucket
    return best


def calculate_health_score(avg_type: Optional[float], streak: int, log_count: int) -> int:
    """Heuristic 0..100 score: closeness to type 4 plus a capped streak bonus."""
    if not log_count or avg_type is None:
        return 0
    deviation_penalty = _round_half_up(abs(avg_type - IDEAL_STOOL_TYPE) * TYPE_DEVIATION_PENALTY)
    type_score = max(0, MAX_HEALTH_SCORE - deviation_penalty)
    streak_bonus = min(streak, STREAK_BONUS_CAP_DAYS) * STREAK_BONUS_PER_DAY
    return min(MAX_HEALTH_SCORE, type_score + streak_bonus)


# =============================================================================
# Dashboard helpers
# =============================================================================


def calculate_type_distribution(logs: Sequence[LogEntry]) -> list[TypeDistributionEntry]:
    """Count and share of each Bristol type, in catalogue order."""
    counts = Counter(log.type for log in logs)
    total = len(logs)
    return [
        TypeDistributionEntry(
            type=stool.type,
            label=stool.label,
            emoji=stool.emoji,
            count=counts[stool.type],
            percentage=(counts[stool.type] / total * 100) if total > 0 else 0.0,
        )
        for stool in STOOL_TYPES
    ]


def calculate_weekly_activity(
    logs: Sequence[LogEntry],
    now: Optional[datetime] = None,
) -> list[WeeklyActivityDay]:
    """Log counts for the seven days ending today, oldest first."""
    now = _resolve_now(now)
    today = now.date()
    per_day = Counter(_local_day(log, now.tzinfo) for log in logs)

    days = []
    for offset in range(6, -1, -1):
        day = today - timedelta(days=offset)
        days.append(
            WeeklyActivityDay(
                day_date=day,
                day=WEEKDAY_NAMES[day.weekday()],
                count=per_day[day],
                is_today=day == today,
            )
        )
    return days


def current_week(logs: Sequence[LogEntry], now: Optional[datetime] = None) -> list[WeekDay]:
    """Monday-to-Sunday week containing today, flagging days with a log."""
    now = _resolve_now(now)
    today = now.date()
    monday = today - timedelta(days=today.weekday())
    log_days = {_local_day(log, now.tzinfo) for log in logs}
    return [
        WeekDay(
            day_date=monday + timedelta(days=i),
            day=WEEKDAY_NAMES[i],
            has_log=(monday + timedelta(days=i)) in log_days,
            is_today=(monday + timedelta(days=i)) == today,
        )
        for i in range(7)
    ]


def count_today(logs: Sequence[LogEntry], now: Optional[datetime] = None) -> int:
    now = _resolve_now(now)
    today = now.date()
    return sum(1 for log in logs if _local_day(log, now.tzinfo) == today)


def get_day_name(occurred_at: datetime, tz: Optional[tzinfo] = None) -> str:
    """Short weekday name ("Mon") for a timestamp."""
    return WEEKDAY_NAMES[_to_zone(occurred_at, tz).weekday()]


# =============================================================================
# Summary
# =============================================================================


def _build_insights(
    log_count: int,
    avg_type: Optional[float],
    streak: int,
    best_period: Optional[TimePeriodBucket],
) -> StatsInsights:
    if avg_type:
        average = Insight(
            title=f"Avg type {avg_type:.1f}",
            subtitle="Ideal is around 4.0 on the Bristol scale.",
        )
    else:
        average = Insight(title="No average yet", subtitle="Log a few entries to see your average.")

    if log_count:
        streak_insight = Insight(
            title=f"Streak: {streak} day{'' if streak == 1 else 's'}",
            subtitle="Keep logging daily to build consistency.",
        )
    else:
        streak_insight = Insight(title="No streak yet", subtitle="Log today to start a streak.")

    if best_period is not None and best_period.count > 0:
        best = Insight(
            title=f"Top time: {best_period.label}",
            subtitle=f"{best_period.count} logs during the {best_period.label.lower()}.",
        )
    else:
        best = Insight(title="No time pattern yet", subtitle="Add more logs to reveal a pattern.")

    return StatsInsights(average=average, streak=streak_insight, best_period=best)


def summarize_stats(logs: Sequence[LogEntry], now: Optional[datetime] = None) -> StatsSummary:
    """Compute every derived value for one user's log collection."""
    now = _resolve_now(now)
    streak = calculate_streak(logs, now)
    avg_type = calculate_avg_type(logs)
    periods = calculate_time_period_stats(logs, now.tzinfo)
    best_period = get_best_period(periods)
    health_score = calculate_health_score(avg_type, streak, len(logs))

    return StatsSummary(
        total_logs=len(logs),
        today_count=count_today(logs, now),
        streak=streak,
        avg_type=avg_type,
        avg_type_display=f"{avg_type:.1f}" if avg_type else "0",
        health_score=health_score,
        health_score_display=str(health_score) if logs else "0",
        time_period_stats=periods,
        best_period=best_period,
        weekly_activity=calculate_weekly_activity(logs, now),
        current_week=current_week(logs, now),
        type_distribution=calculate_type_distribution(logs),
        insights=_build_insights(len(logs), avg_type, streak, best_period),
    )
