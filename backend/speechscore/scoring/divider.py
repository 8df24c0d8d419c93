from __future__ import annotations

from dataclasses import dataclass

from speechscore.config import DEFAULT_SCORE_SCALE
from speechscore.models.score_state import DIVIDER_CUSTOM, DIVIDER_DERIVED
from speechscore.scoring.errors import InvalidDivider


@dataclass(frozen=True)
class Calibration:
    divider: float
    final_score: float
    divider_source: str


@dataclass(frozen=True)
class ScoreBand:
    label: str
    color: str
    level: int


SCORE_BANDS = (
    (90, ScoreBand("Outstanding", "green", 6)),
    (80, ScoreBand("Excellent", "green", 5)),
    (70, ScoreBand("Very Good", "blue", 4)),
    (60, ScoreBand("Good", "blue", 3)),
    (50, ScoreBand("Satisfactory", "yellow", 2)),
    (40, ScoreBand("Needs Improvement", "yellow", 1)),
)
LOWEST_BAND = ScoreBand("Work Required", "red", 0)


def derive_divider(max_potential_points: float, *, scale: float = DEFAULT_SCORE_SCALE) -> float:
    return max_potential_points / scale


def calibrate(
    total_points: float,
    max_potential_points: float,
    custom_divider: float | None = None,
    *,
    scale: float = DEFAULT_SCORE_SCALE,
) -> Calibration:
    """Rescale raw points onto the fixed final-score scale.

    A coach divider wins whenever it is positive. Otherwise the divider is
    derived from the points attainable by the skills scored so far, so the
    result drifts as more skills get scored.
    """
    if custom_divider is not None and custom_divider > 0:
        divider = float(custom_divider)
        divider_source = DIVIDER_CUSTOM
    else:
        divider = derive_divider(max_potential_points, scale=scale)
        divider_source = DIVIDER_DERIVED
    if not divider > 0:
        raise InvalidDivider(divider)
    return Calibration(
        divider=divider,
        final_score=total_points / divider,
        divider_source=divider_source,
    )


def score_calculation(total_points: float, divider: float, final_score: float) -> str:
    return f"{total_points:.2f} ÷ {divider:.4f} = {final_score:.2f}"


def describe_final_score(final_score: float) -> ScoreBand:
    for threshold, band in SCORE_BANDS:
        if final_score >= threshold:
            return band
    return LOWEST_BAND
