from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from ct_platform.importer import BINGE_THRESHOLD, apply_binge_correction
from ct_platform.importer._binge import air_date_timestamp, binge_days
from ct_platform.importer._types import EpisodeWatch

SAME_DAY = datetime(2023, 3, 4, 21, 15, tzinfo=timezone.utc)


def _eps(n: int, ts: datetime = SAME_DAY) -> list[EpisodeWatch]:
    return [EpisodeWatch(1, i, ts) for i in range(1, n + 1)]


def _air(n: int) -> dict[tuple[int, int], date]:
    return {(1, i): date(2019, 1, i) for i in range(1, n + 1)}


def test_threshold_constant() -> None:
    assert BINGE_THRESHOLD == 4


def test_five_same_day_episodes_take_air_dates() -> None:
    out = apply_binge_correction(_eps(5), lambda: _air(5))
    assert [e.watched_at for e in out] == [air_date_timestamp(date(2019, 1, i)) for i in range(1, 6)]
    assert all(e.watched_at.tzinfo is not None for e in out)


def test_below_threshold_keeps_dates_and_skips_lookup() -> None:
    calls: list[int] = []

    def fetch() -> dict[tuple[int, int], date]:
        calls.append(1)
        return _air(5)

    eps = _eps(3) + [
        EpisodeWatch(1, 4, datetime(2023, 3, 5, 20, 0, tzinfo=timezone.utc)),
        EpisodeWatch(1, 5, datetime(2023, 3, 6, 20, 0, tzinfo=timezone.utc)),
    ]
    out = apply_binge_correction(eps, fetch)
    assert out == eps
    assert calls == []


def test_missing_air_date_keeps_original_timestamp() -> None:
    air = _air(5)
    del air[(1, 3)]
    out = apply_binge_correction(_eps(5), lambda: air)
    assert out[2].watched_at == SAME_DAY
    assert [e.watched_at for i, e in enumerate(out) if i != 2] == [
        air_date_timestamp(date(2019, 1, i)) for i in (1, 2, 4, 5)
    ]


def test_only_binge_day_is_corrected() -> None:
    other = datetime(2023, 4, 1, 10, 0, tzinfo=timezone.utc)
    eps = _eps(5) + [EpisodeWatch(2, 1, other)]
    air = {**_air(5), (2, 1): date(2020, 6, 1)}
    out = apply_binge_correction(eps, lambda: air)
    assert out[-1].watched_at == other
    assert binge_days(eps) == {SAME_DAY.date()}


def test_day_is_grouped_in_utc() -> None:
    # 23:30 at UTC-5 is already the next day in UTC
    est = timezone(timedelta(hours=-5))
    late = [EpisodeWatch(1, i, datetime(2023, 3, 3, 23, 30, tzinfo=est)) for i in range(1, 6)]
    assert binge_days(late) == {date(2023, 3, 4)}


def test_undated_episodes_are_left_alone() -> None:
    eps = _eps(5) + [EpisodeWatch(1, 6, None)]
    out = apply_binge_correction(eps, lambda: {**_air(5), (1, 6): date(2019, 1, 6)})
    assert out[-1].watched_at is None


def test_custom_threshold() -> None:
    out = apply_binge_correction(_eps(3), lambda: _air(3), threshold=2)
    assert [e.watched_at for e in out] == [air_date_timestamp(date(2019, 1, i)) for i in range(1, 4)]
