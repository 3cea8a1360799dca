"""
Quantity and Ratio Comparison

Unit-aware matching of observed values against biomarker thresholds.

Two shapes of observation value reach the classifiers:

    Quantity  {value, comparator, unit, system, code}
    Ratio     {numerator: Quantity, denominator: Quantity}

A Ratio is read as a percentage: numerator / denominator * 100.

Nothing here raises for clinical content. Missing values, mismatched units
and unsupported operators all come back as False.
"""

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Union

logger = logging.getLogger("mcode-engine")

Number = Union[int, float]
Value = Union[int, float, str]


# ==============================================================================
# VALUE TYPES
# ==============================================================================

@dataclass(frozen=True)
class Quantity:
    """FHIR Quantity as seen on tumor marker observations."""
    value: Optional[Value] = None
    comparator: Optional[str] = None
    unit: Optional[str] = None
    system: Optional[str] = None
    code: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Optional["Quantity"]:
        if not isinstance(data, Mapping):
            return None
        value = data.get("value")
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            value = None
        return cls(
            value=value,
            comparator=_text(data.get("comparator")),
            unit=_text(data.get("unit")),
            system=_text(data.get("system")),
            code=_text(data.get("code")),
        )

    @property
    def unit_code(self) -> Optional[str]:
        """Coded unit (UCUM `code`), falling back to the human `unit`."""
        return self.code or self.unit

    def to_dict(self) -> dict:
        fields = (
            ("value", self.value), ("comparator", self.comparator), ("unit", self.unit),
            ("system", self.system), ("code", self.code),
        )
        return {k: v for k, v in fields if v is not None}


@dataclass(frozen=True)
class Ratio:
    numerator: Optional[Quantity] = None
    denominator: Optional[Quantity] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Optional["Ratio"]:
        if not isinstance(data, Mapping):
            return None
        return cls(
            numerator=Quantity.from_dict(data.get("numerator")),
            denominator=Quantity.from_dict(data.get("denominator")),
        )

    def to_dict(self) -> dict:
        return {
            "numerator": self.numerator.to_dict() if self.numerator else None,
            "denominator": self.denominator.to_dict() if self.denominator else None,
        }


# ==============================================================================
# HELPERS
# ==============================================================================

def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _as_text(value: Any) -> str:
    """Render a value the way it is written in a threshold list (3.0 -> "3")."""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        if isinstance(value, (int, float)):
            return float(value)
        return float(str(value).strip())
    except (ValueError, OverflowError):
        return None


def _compare(left: Any, right: Any, comparator: str) -> bool:
    """Ordered comparison; numeric when both sides are numbers, else textual."""
    left_num, right_num = _as_number(left), _as_number(right)
    if left_num is not None and right_num is not None:
        left, right = left_num, right_num
    elif isinstance(left, str) and isinstance(right, str):
        pass
    else:
        return False

    if comparator == ">=":
        return left >= right
    if comparator == "<":
        return left < right
    if comparator == ">":
        return left > right
    return False


# ==============================================================================
# MATCHERS
# ==============================================================================

def quantity_match(
    value: Optional[Value],
    unit: Optional[str],
    targets: Sequence[Value],
    target_comparator: str,
    target_unit: Optional[str] = None,
    comparator: Optional[str] = None,
) -> bool:
    """
    Match an observed quantity against a threshold.

    The observed quantity's own comparator is accepted but does not change
    the result; only the target comparator is applied.

    Args:
        value: Observed value (number or token such as "3+")
        unit: Observed unit, None when the observation is unitless
        targets: Discrete allowed values for "=", or a one-item threshold list
        target_comparator: One of "=", ">=", "<", ">"
        target_unit: Required unit, None means "must be unitless"
        comparator: Observed comparator (ignored)

    Returns:
        True if units agree and the value satisfies the comparison
    """
    if value is None or not targets:
        return False
    if (unit or None) != (target_unit or None):
        return False

    if target_comparator == "=":
        observed = _as_text(value)
        return any(observed == _as_text(target) for target in targets)

    if target_comparator in (">=", "<", ">"):
        return _compare(value, targets[0], target_comparator)

    return False


def ratio_percentage(ratio: Optional[Ratio]) -> Optional[float]:
    """numerator / denominator * 100, or None when it cannot be computed."""
    if ratio is None or ratio.numerator is None or ratio.denominator is None:
        return None
    numerator = _as_number(ratio.numerator.value)
    denominator = _as_number(ratio.denominator.value)
    if numerator is None or not denominator:
        return None
    return numerator / denominator * 100


def ratio_match(
    ratio: Optional[Ratio],
    target_percent: Number,
    target_comparator: str,
    strict_comparators: bool = False,
) -> bool:
    """
    Compare a ratio, read as a percentage, against a target percentage.

    With `strict_comparators` the numerator and denominator must carry the
    same comparator as the target, and that comparator is the one applied.
    """
    percentage = ratio_percentage(ratio)
    if percentage is None:
        return False

    if strict_comparators:
        if not (ratio.numerator.comparator == ratio.denominator.comparator == target_comparator):
            logger.debug(
                f"[COMPARE] Strict ratio check rejected comparators "
                f"{ratio.numerator.comparator}/{ratio.denominator.comparator} vs {target_comparator}"
            )
            return False

    if target_comparator not in (">=", "<", ">"):
        return False
    return _compare(percentage, target_percent, target_comparator)
