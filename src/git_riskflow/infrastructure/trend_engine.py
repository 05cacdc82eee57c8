"""Velocity, hotspot and refactor rankings over an ordered snapshot window.

Each function key gets a complexity series indexed by its position in the
window. Revisions where the function is absent are gaps, not zeros.

Velocity is the least-squares slope of complexity over window index. With
exactly two points this equals the endpoint rate (c1 - c0) / (i1 - i0), so
one estimator covers every series length. Functions seen in a single
revision have no velocity and are only counted in the totals.

Hotspot score = latest * (1 + max(slope, 0)), for keys with slope >= 0.
Refactor score = drop * (1 + |slope|), for keys with slope < 0 and a drop
below their peak, where drop = peak - latest.
Both rankings order by score desc, then latest complexity desc, then
function id asc.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from git_riskflow.domain.models import (
    HotspotEntry,
    RefactorEntry,
    Snapshot,
    TrendWindow,
    VelocityEntry,
    format_function_id,
)

_PRECISION = 6

Key = tuple[str, str]


@dataclass(frozen=True)
class Series:
    key: Key
    points: tuple[tuple[int, int], ...]  # (window index, complexity), ascending index

    @property
    def latest(self) -> int:
        return self.points[-1][1]

    @property
    def first(self) -> int:
        return self.points[0][1]

    @property
    def peak(self) -> int:
        return max(c for _, c in self.points)

    @property
    def function_id(self) -> str:
        return format_function_id(*self.key)


def dedupe_window(window: Sequence[Snapshot]) -> list[Snapshot]:
    """Drop repeated revision ids, keeping the first occurrence."""
    seen: set[str] = set()
    ordered = []
    for snap in window:
        if snap.revision_id in seen:
            continue
        seen.add(snap.revision_id)
        ordered.append(snap)
    return ordered


def build_series(window: Sequence[Snapshot]) -> list[Series]:
    points: dict[Key, list[tuple[int, int]]] = {}
    for index, snap in enumerate(window):
        for fn in snap.functions:
            points.setdefault(fn.key, []).append((index, fn.complexity))
    return [Series(key, tuple(points[key])) for key in sorted(points)]


def least_squares_slope(points: Sequence[tuple[int, int]]) -> float:
    """Slope of the ordinary least-squares line through (index, complexity)."""
    n = len(points)
    if n < 2:
        raise ValueError("slope needs at least two points")
    mean_x = sum(x for x, _ in points) / n
    mean_y = sum(y for _, y in points) / n
    sxx = sum((x - mean_x) ** 2 for x, _ in points)
    sxy = sum((x - mean_x) * (y - mean_y) for x, y in points)
    if sxx == 0:
        return 0.0
    return sxy / sxx


def hotspot_score(latest: int, slope: float) -> float:
    return latest * (1.0 + max(slope, 0.0))


def refactor_score(drop: int, slope: float) -> float:
    return drop * (1.0 + abs(slope))


def _rank_key(score: float, latest: int, function_id: str) -> tuple[float, int, str]:
    return (-score, -latest, function_id)


def analyze(window: Sequence[Snapshot], top_k: int) -> TrendWindow:
    """Compute trends over *window*, which must be chronologically ascending."""
    if top_k < 1:
        raise ValueError(f"top_k must be at least 1 (got {top_k})")

    snapshots = dedupe_window(window)
    series = build_series(snapshots)

    velocities: list[VelocityEntry] = []
    hotspots: list[HotspotEntry] = []
    refactors: list[RefactorEntry] = []

    for s in series:
        if len(s.points) < 2:
            continue
        slope = round(least_squares_slope(s.points), _PRECISION)
        file_path, qualified_name = s.key
        velocities.append(VelocityEntry(
            file_path=file_path,
            qualified_name=qualified_name,
            slope=slope,
            points=len(s.points),
            first_complexity=s.first,
            latest_complexity=s.latest,
        ))
        if slope >= 0:
            hotspots.append(HotspotEntry(
                file_path=file_path,
                qualified_name=qualified_name,
                score=round(hotspot_score(s.latest, slope), _PRECISION),
                latest_complexity=s.latest,
                slope=slope,
            ))
        else:
            drop = s.peak - s.latest
            if drop > 0:
                refactors.append(RefactorEntry(
                    file_path=file_path,
                    qualified_name=qualified_name,
                    score=round(refactor_score(drop, slope), _PRECISION),
                    drop=drop,
                    latest_complexity=s.latest,
                    slope=slope,
                ))

    velocities.sort(key=lambda v: v.function_id)
    hotspots.sort(key=lambda h: _rank_key(h.score, h.latest_complexity, h.function_id))
    refactors.sort(key=lambda r: _rank_key(r.score, r.latest_complexity, r.function_id))

    return TrendWindow(
        revisions=tuple(s.revision_id for s in snapshots),
        total_functions=len(series),
        tracked_functions=len(velocities),
        velocities=tuple(velocities),
        hotspots=tuple(hotspots[:top_k]),
        refactors=tuple(refactors[:top_k]),
    )
