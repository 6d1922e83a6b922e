"""Validation lifecycle: the seven fixed phases an idea moves through."""
from __future__ import annotations

from typing import Any

PHASES: tuple[str, ...] = (
    "idea_exploration",
    "customer_discovery",
    "customer_problem_fit",
    "problem_solution_fit",
    "solution_product_fit",
    "product_market_fit",
    "scale_up",
)

PHASE_LABELS: dict[str, str] = {
    "idea_exploration": "Idea Exploration",
    "customer_discovery": "Customer Discovery",
    "customer_problem_fit": "Customer/Problem Fit",
    "problem_solution_fit": "Problem/Solution Fit",
    "solution_product_fit": "Solution/Product Fit",
    "product_market_fit": "Product/Market Fit",
    "scale_up": "Scale-Up",
}

DEFAULT_PHASE = PHASES[0]

# (lower bound, band) checked top-down
_PROBABILITY_BANDS = ((80, "high"), (60, "fair"), (40, "medium"), (20, "low"))


def default_progress() -> dict[str, float]:
    return {p: 0.0 for p in PHASES}


def phase_index(phase: str) -> int:
    return PHASES.index(phase)


def validate_phase(value: Any) -> str:
    """Normalize a phase id. Raises ValueError for anything outside PHASES."""
    phase = str(value or "").strip().lower()
    if phase not in PHASES:
        raise ValueError(f"Unknown phase: {value!r}")
    return phase


def coerce_phase(value: Any, default: str = DEFAULT_PHASE) -> str:
    """Like validate_phase, but falls back to *default* instead of raising."""
    try:
        return validate_phase(value)
    except ValueError:
        return default


def clamp_progress(value: Any) -> float:
    try:
        num = float(value)
    except (TypeError, ValueError):
        return 0.0
    if num != num:  # NaN
        return 0.0
    return max(0.0, min(100.0, num))


def normalize_progress(raw: Any) -> dict[str, float]:
    """Return a complete phase -> progress map with values clamped to 0..100."""
    progress = default_progress()
    if isinstance(raw, dict):
        for phase in PHASES:
            if phase in raw:
                progress[phase] = clamp_progress(raw[phase])
    return progress


def overall_progress(progress: dict[str, float]) -> float:
    progress = normalize_progress(progress)
    return round(sum(progress.values()) / len(PHASES), 1)


def success_probability(phase: str, progress: dict[str, float]) -> float:
    """Base probability grows by 10 per phase reached, plus current-phase progress."""
    phase = coerce_phase(phase)
    current = normalize_progress(progress)[phase]
    return min(100.0, current + phase_index(phase) * 10)


def probability_band(value: float) -> str:
    for bound, band in _PROBABILITY_BANDS:
        if value >= bound:
            return band
    return "critical"


def phase_list() -> list[dict]:
    return [{"id": p, "label": PHASE_LABELS[p], "index": i} for i, p in enumerate(PHASES)]
