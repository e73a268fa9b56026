# ct_platform/importer/_binge.py
# Binge correction: bulk "mark as watched" days get the episode air date instead.
# Copyright (c) 2025-2026 CineTrack
from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import date, datetime, time, timezone

from ._types import AirDateIndex, EpisodeWatch

# a calendar day with more than this many watched episodes is a binge day
BINGE_THRESHOLD = 4


def _day(ts: datetime) -> date:
    if ts.tzinfo is None:
        return ts.date()
    return ts.astimezone(timezone.utc).date()


def binge_days(episodes: Sequence[EpisodeWatch], threshold: int = BINGE_THRESHOLD) -> set[date]:
    counts = Counter(_day(e.watched_at) for e in episodes if e.watched_at is not None)
    return {d for d, n in counts.items() if n > threshold}


def air_date_timestamp(d: date) -> datetime:
    return datetime.combine(d, time.min, tzinfo=timezone.utc)


def apply_binge_correction(
    episodes: Sequence[EpisodeWatch],
    fetch_air_dates: Callable[[], AirDateIndex],
    *,
    threshold: int = BINGE_THRESHOLD,
) -> list[EpisodeWatch]:
    """
    Return the episodes with corrected timestamps, in input order.

    Only episodes on a binge day that have a known air date are changed;
    fetch_air_dates runs at most once and only when a binge day exists.
    """
    days = binge_days(episodes, threshold)
    if not days:
        return list(episodes)

    air = fetch_air_dates() or {}
    out: list[EpisodeWatch] = []
    for ep in episodes:
        if ep.watched_at is not None and _day(ep.watched_at) in days:
            aired = air.get((ep.season_number, ep.episode_number))
            if aired is not None:
                out.append(replace(ep, watched_at=air_date_timestamp(aired)))
                continue
        out.append(ep)
    return out


__all__ = ["BINGE_THRESHOLD", "apply_binge_correction", "binge_days", "air_date_timestamp"]
