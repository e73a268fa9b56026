# ct_platform/importer/_ratings.py
# Trakt 1..10 ratings -> local 1..5 scale.
from __future__ import annotations

RATING_LABELS: dict[int, str] = {
    1: "Waste",
    2: "Meh",
    3: "Decent",
    4: "Entertaining",
    5: "Outstanding",
}


def map_rating(source_rating: int) -> int:
    """9-10 -> 5, 7-8 -> 4, 5-6 -> 3, 3-4 -> 2, 1-2 -> 1. Out-of-range input is clamped first."""
    r = min(10, max(1, int(source_rating)))
    return (r + 1) // 2


def rating_label(local_rating: int) -> str:
    return RATING_LABELS.get(int(local_rating), "")


__all__ = ["map_rating", "rating_label", "RATING_LABELS"]
