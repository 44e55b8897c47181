import math
import re

_FLOAT_PREFIX = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")


class MathTools:
    """Provides numeric helpers for set values entered as free text."""

    BRZYCKI_A: float = 1.0278
    BRZYCKI_B: float = 0.0278

    @staticmethod
    def parse_float(value) -> float:
        """Parse the leading number of ``value``; ``nan`` when there is none.

        ``"82.5kg"`` gives ``82.5`` while ``""`` and ``"abc"`` give ``nan``.
        """
        if isinstance(value, bool) or value is None:
            return math.nan
        if isinstance(value, (int, float)):
            return float(value)
        match = _FLOAT_PREFIX.match(str(value))
        if match is None:
            return math.nan
        return float(match.group(1))

    @staticmethod
    def parse_int(value) -> int | None:
        """Parse the leading integer of ``value``; ``None`` when there is none."""
        if isinstance(value, bool) or value is None:
            return None
        if isinstance(value, float):
            return int(value) if math.isfinite(value) else None
        if isinstance(value, int):
            return value
        match = _INT_PREFIX.match(str(value))
        if match is None:
            return None
        return int(match.group(1))

    @staticmethod
    def round_half_up(value: float) -> int:
        """Round to the nearest integer with halves going towards +inf."""
        return int(math.floor(value + 0.5))

    @classmethod
    def brzycki_1rm(cls, weight, reps) -> int:
        """Return the Brzycki one-rep max estimate rounded to an integer.

        Zero, blank or non-numeric inputs give 0. Rep counts are not clamped,
        so very high reps produce negative estimates.
        """
        w = cls.parse_float(weight)
        r = cls.parse_float(reps)
        if math.isnan(w) or math.isnan(r) or not w or not r:
            return 0
        denominator = cls.BRZYCKI_A - cls.BRZYCKI_B * r
        if denominator == 0:
            return 0
        estimate = w / denominator
        if not math.isfinite(estimate):
            return 0
        return cls.round_half_up(estimate)
