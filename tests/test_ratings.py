from __future__ import annotations

from ct_platform.importer import map_rating, rating_label


def test_map_rating_buckets() -> None:
    assert [map_rating(r) for r in range(1, 11)] == [1, 1, 2, 2, 3, 3, 4, 4, 5, 5]


def test_map_rating_stays_in_range_and_never_decreases() -> None:
    out = [map_rating(r) for r in range(1, 11)]
    assert all(1 <= v <= 5 for v in out)
    assert out == sorted(out)


def test_map_rating_clamps_out_of_range() -> None:
    assert map_rating(0) == 1
    assert map_rating(-3) == 1
    assert map_rating(11) == 5


def test_rating_label() -> None:
    assert rating_label(5) == "Outstanding"
    assert rating_label(1) == "Waste"
    assert rating_label(9) == ""
