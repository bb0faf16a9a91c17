"""Grade history -> chart series.

``project`` turns grade views into cumulative-average points for one of the
fixed look-back periods or for the whole history. It performs no I/O; pass
``now`` to make the output reproducible.
"""

from __future__ import annotations

import math
from bisect import bisect_right
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from itertools import accumulate
from typing import Iterable, Optional

from classpulse.core.dates import parse_iso, utc_now
from classpulse.domain.models import ChartPoint, GradeView


class ChartPeriod(str, Enum):
    WEEK = "7D"
    MONTH = "1M"
    QUARTER = "3M"
    HALF_YEAR = "6M"
    YEAR = "1Y"
    ALL = "All"


# 7D looks back six days so that today is the seventh point.
LOOKBACK_DAYS = {
    ChartPeriod.WEEK: 6,
    ChartPeriod.MONTH: 30,
    ChartPeriod.QUARTER: 90,
    ChartPeriod.HALF_YEAR: 180,
    ChartPeriod.YEAR: 365,
}
FLAT_LINE_POINTS = {
    ChartPeriod.WEEK: 7,
    ChartPeriod.MONTH: 10,
    ChartPeriod.QUARTER: 15,
    ChartPeriod.HALF_YEAR: 20,
    ChartPeriod.YEAR: 25,
}
SERIES_POINTS = {
    ChartPeriod.WEEK: 7,
    ChartPeriod.MONTH: 20,
    ChartPeriod.QUARTER: 30,
    ChartPeriod.HALF_YEAR: 40,
    ChartPeriod.YEAR: 50,
}
FLAT_LINE_TITLE = "N/A"


@dataclass(frozen=True)
class _Observation:
    when: datetime
    score: float
    title: str


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def chart_score(grade: GradeView) -> Optional[float]:
    """Numeric value a grade contributes to averages, or None if it is excluded."""
    score = grade.score
    if isinstance(score, (int, float)) and not isinstance(score, bool):
        return float(score)
    if grade.status == "not_submitted":
        return 0.0
    return None


def _label(when: datetime) -> str:
    return f"{when.strftime('%b')} {when.day}"


def _observations(grades: Iterable[GradeView], classroom_filter: Optional[str]) -> list[_Observation]:
    observations = []
    for grade in grades:
        if classroom_filter and classroom_filter != "all" and grade.classroom_id != classroom_filter:
            continue
        score = chart_score(grade)
        if score is None:
            continue
        when = parse_iso(grade.submitted_date)
        if when is None:
            continue
        observations.append(_Observation(when=when, score=score, title=grade.assignment_title))
    observations.sort(key=lambda item: item.when)
    return observations


def _timeline(start: datetime, end: datetime, count: int) -> list[datetime]:
    interval = (end - start) / (count - 1)
    points = [start + interval * i for i in range(count - 1)]
    points.append(end)
    return points


def _event_series(observations: list[_Observation], now: datetime) -> list[ChartPoint]:
    points: list[ChartPoint] = []
    total = 0.0
    for count, item in enumerate(observations, start=1):
        total += item.score
        points.append(
            ChartPoint(
                date=_label(item.when),
                average=round_half_up(total / count),
                count=count,
                assignment_title=item.title,
            )
        )

    last = observations[-1]
    if now.date() != last.when.date():
        points.append(
            ChartPoint(
                date=_label(now),
                average=points[-1].average,
                count=len(observations),
                assignment_title=last.title,
            )
        )
    return points


def _time_series(observations: list[_Observation], period: ChartPeriod, now: datetime) -> list[ChartPoint]:
    start = now - timedelta(days=LOOKBACK_DAYS[period])
    running = list(accumulate(item.score for item in observations))

    if not any(item.when >= start for item in observations):
        average = round_half_up(running[-1] / len(observations))
        return [
            ChartPoint(date=_label(when), average=average, count=len(observations), assignment_title=FLAT_LINE_TITLE)
            for when in _timeline(start, now, FLAT_LINE_POINTS[period])
        ]

    times = [item.when for item in observations]
    points: list[ChartPoint] = []
    for when in _timeline(start, now, SERIES_POINTS[period]):
        count = bisect_right(times, when)
        if count == 0:
            continue
        points.append(
            ChartPoint(
                date=_label(when),
                average=round_half_up(running[count - 1] / count),
                count=count,
                assignment_title=observations[count - 1].title,
            )
        )
    return points


def project(
    grades: Iterable[GradeView],
    period: ChartPeriod | str,
    classroom_filter: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
) -> list[ChartPoint]:
    period = ChartPeriod(period)
    now = parse_iso(now) if now is not None else utc_now()
    observations = _observations(grades, classroom_filter)
    if not observations:
        return []
    if period is ChartPeriod.ALL:
        return _event_series(observations, now)
    return _time_series(observations, period, now)


def overall_average(grades: Iterable[GradeView], classroom_filter: Optional[str] = None) -> Optional[int]:
    observations = _observations(grades, classroom_filter)
    if not observations:
        return None
    return round_half_up(sum(item.score for item in observations) / len(observations))
