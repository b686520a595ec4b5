"""Severity and confidence definitions for auditor findings."""

from __future__ import annotations

from enum import Enum

from .errors import ConfigurationError


class _RankedEnum(str, Enum):
    """String enum with a total order driven by ``rank``."""

    @property
    def rank(self) -> int:
        return list(type(self)).index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, type(self)):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, type(self)):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, type(self)):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, type(self)):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def parse(cls, value: str):
        """Return the member named ``value`` (case-insensitive)."""

        text = str(value or "").strip().upper()
        for member in cls:
            if member.value == text:
                return member
        allowed = ", ".join(member.value.lower() for member in cls)
        raise ConfigurationError(f"Invalid {cls.__name__.lower()} '{value}' (expected one of: {allowed})")


class Severity(_RankedEnum):
    """Enumerate the supported severity levels, lowest first."""

    INFO = "INFO"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class Confidence(_RankedEnum):
    """Certainty that a finding reflects a real ingress-nginx dependency."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


SEVERITY_ORDER = tuple(reversed(list(Severity)))
