"""
PlanGate - Limit Values

Tagged representation of a usage limit.

On the wire (database rows, API payloads) a limit is an integer where -1 means
unlimited, 0 means unavailable and n > 0 is a hard cap. Inside the engine a
limit is always a LimitValue so the -1 sentinel never takes part in
arithmetic or ordinary numeric comparisons.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


UNLIMITED_WIRE = -1
UNAVAILABLE_WIRE = 0


class LimitKind(str, Enum):
    UNLIMITED = "unlimited"
    CAPPED = "capped"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class LimitValue:
    """A usage limit: Unlimited, Capped(n) with n > 0, or Unavailable."""
    kind: LimitKind
    cap: int = 0

    def __post_init__(self):
        if self.kind == LimitKind.CAPPED:
            if isinstance(self.cap, bool) or not isinstance(self.cap, int) or self.cap <= 0:
                raise ValueError(f"Capped limit requires a positive integer, got {self.cap!r}")
        elif self.cap != 0:
            raise ValueError(f"{self.kind.value} limit cannot carry a cap")

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def unlimited(cls) -> "LimitValue":
        return cls(LimitKind.UNLIMITED)

    @classmethod
    def capped(cls, cap: int) -> "LimitValue":
        return cls(LimitKind.CAPPED, cap)

    @classmethod
    def unavailable(cls) -> "LimitValue":
        return cls(LimitKind.UNAVAILABLE)

    @classmethod
    def from_wire(cls, value: int) -> "LimitValue":
        """
        Convert a wire integer into a LimitValue.

        Raises:
            TypeError: If value is not an integer (booleans are rejected)
            ValueError: If value is below -1
        """
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"Limit must be an integer, got {type(value).__name__}")
        if value == UNLIMITED_WIRE:
            return cls.unlimited()
        if value == UNAVAILABLE_WIRE:
            return cls.unavailable()
        if value < UNLIMITED_WIRE:
            raise ValueError(f"Limit must be >= -1, got {value}")
        return cls.capped(value)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def is_unlimited(self) -> bool:
        return self.kind == LimitKind.UNLIMITED

    @property
    def is_unavailable(self) -> bool:
        return self.kind == LimitKind.UNAVAILABLE

    @property
    def is_capped(self) -> bool:
        return self.kind == LimitKind.CAPPED

    def to_wire(self) -> int:
        if self.is_unlimited:
            return UNLIMITED_WIRE
        if self.is_unavailable:
            return UNAVAILABLE_WIRE
        return self.cap

    def display(self) -> str:
        """Human readable form: 'Unlimited', '0' or a thousands-separated cap."""
        if self.is_unlimited:
            return "Unlimited"
        if self.is_unavailable:
            return "0"
        return f"{self.cap:,}"

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    def _rank(self) -> Tuple[int, int]:
        # Unavailable < Capped(1) < Capped(2) < ... < Unlimited
        if self.is_unlimited:
            return (2, 0)
        if self.is_capped:
            return (1, self.cap)
        return (0, 0)

    def is_more_permissive_than(self, other: "LimitValue") -> bool:
        return self._rank() > other._rank()

    def is_less_permissive_than(self, other: "LimitValue") -> bool:
        return self._rank() < other._rank()

    def __str__(self) -> str:
        return self.display()


def more_permissive(first: LimitValue, second: LimitValue) -> LimitValue:
    """Return whichever limit allows more usage."""
    return second if second.is_more_permissive_than(first) else first


@dataclass(frozen=True)
class LimitCheck:
    """Outcome of checking current usage against a limit."""
    allowed: bool
    limit: LimitValue
    remaining: Optional[int]

    def to_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "limit": self.limit.to_wire(),
            "remaining": self.remaining,
        }


def check_limit(limit: LimitValue, current_usage: int) -> LimitCheck:
    """
    Check whether one more unit of usage fits under a limit.

    Args:
        limit: The resolved limit
        current_usage: Units already consumed

    Returns:
        LimitCheck with remaining=None when the limit is unlimited
    """
    if limit.is_unlimited:
        return LimitCheck(allowed=True, limit=limit, remaining=None)
    if limit.is_unavailable:
        return LimitCheck(allowed=False, limit=limit, remaining=0)
    remaining = max(0, limit.cap - current_usage)
    return LimitCheck(allowed=current_usage < limit.cap, limit=limit, remaining=remaining)


def format_limit_display(value: int) -> str:
    """Format a wire limit for display, e.g. -1 -> 'Unlimited', 1000 -> '1,000'."""
    return LimitValue.from_wire(value).display()
