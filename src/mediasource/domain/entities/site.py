"""Site identity and capability requirements."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Flag, auto


@dataclass(frozen=True)
class Site:
    """Identity of an external site (one adapter per site)."""

    value: str
    title: str = ""

    def __str__(self) -> str:
        return self.value

    @property
    def display_name(self) -> str:
        return self.title or self.value


# Pseudo-site for results that span several adapters or come from a bare link.
ANY_SITE = Site("any", "Any")


class ProviderRequirements(Flag):
    """Capabilities a caller must hold before an adapter may be invoked."""

    NONE = 0
    ACCOUNT_FOR_ANY = auto()
    ACCOUNT_FOR_SPECIAL = auto()
    PRO_FOR_ANY = auto()
    PRO_FOR_SPECIAL = auto()
    PROXY = auto()

    def satisfied_by(self, granted: ProviderRequirements) -> bool:
        """True when every flag in ``self`` is also present in *granted*."""
        return (self & ~granted) == ProviderRequirements.NONE

    @classmethod
    def from_names(cls, names: list[str] | tuple[str, ...]) -> ProviderRequirements:
        result = cls.NONE
        for name in names:
            result |= cls[name.strip().upper()]
        return result
