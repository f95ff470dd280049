from __future__ import annotations

from dataclasses import dataclass

FUZZY_SCORERS = ("ratio", "token_sort_ratio", "token_set_ratio")


@dataclass(frozen=True, slots=True)
class ReconcileConfig:
    """
    Stage 2 reconciliation parameters.

    Fuzzy matching applies to free-text answers only. Two answers share a
    vote bucket when the chosen rapidfuzz scorer rates their stripped,
    lower-cased forms at or above `fuzzy_threshold` (0..100).
    """

    enable_fuzzy: bool = True
    fuzzy_threshold: float = 90.0
    fuzzy_scorer: str = "token_sort_ratio"
    apply_ruler_scale: bool = True

    def validate(self) -> None:
        if not (0.0 <= self.fuzzy_threshold <= 100.0):
            raise ValueError("fuzzy_threshold must be within [0, 100]")
        if self.fuzzy_scorer not in FUZZY_SCORERS:
            raise ValueError(f"fuzzy_scorer must be one of {', '.join(FUZZY_SCORERS)}")

    def to_dict(self) -> dict[str, object]:
        return {
            "enable_fuzzy": self.enable_fuzzy,
            "fuzzy_threshold": self.fuzzy_threshold,
            "fuzzy_scorer": self.fuzzy_scorer,
            "apply_ruler_scale": self.apply_ruler_scale,
        }
