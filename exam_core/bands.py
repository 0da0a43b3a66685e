# exam_core/bands.py
from __future__ import annotations
import math
from typing import Dict, Tuple

# (min correct, band), descending
LISTENING_BANDS: Tuple[Tuple[int, float], ...] = (
    (39, 9.0), (37, 8.5), (35, 8.0), (32, 7.5), (30, 7.0), (26, 6.5),
    (23, 6.0), (18, 5.5), (16, 5.0), (13, 4.5), (10, 4.0), (8, 3.5),
    (6, 3.0), (4, 2.5), (2, 2.0), (1, 1.0), (0, 0.0),
)
READING_BANDS: Tuple[Tuple[int, float], ...] = (
    (39, 9.0), (37, 8.5), (35, 8.0), (33, 7.5), (30, 7.0), (27, 6.5),
    (23, 6.0), (19, 5.5), (15, 5.0), (13, 4.5), (10, 4.0), (8, 3.5),
    (6, 3.0), (4, 2.5), (2, 2.0), (1, 1.0), (0, 0.0),
)

BAND_TABLES: Dict[str, Tuple[Tuple[int, float], ...]] = {
    "reading": READING_BANDS,
    "listening": LISTENING_BANDS,
}


def band_for(correct_count: int, skill: str = "reading") -> float:
    table = BAND_TABLES.get(skill, READING_BANDS)
    n = int(correct_count)
    for min_correct, band in table:
        if n >= min_correct: return band
    return 0.0


def half_step(score: float) -> float:
    return math.floor(float(score) * 2 + 0.5) / 2
