from enum import Enum

from coachgate.constants.tiers import TIER_ALIASES, TIER_ORDER
from coachgate.models.errors import UnknownTierError


class Tier(str, Enum):
    """Membership tier enumeration, declared lowest access first"""

    BASIC = "basic"
    PREMIUM = "premium"
    ELITE = "elite"

    @property
    def rank(self) -> int:
        """Integer rank; a higher rank unlocks everything a lower one does."""
        return TIER_ORDER.index(self.value) + 1

    @classmethod
    def parse(cls, label: "Tier | str") -> "Tier":
        """
        Parse a stored tier label into a Tier.

        Args:
            label: Tier member or raw label as persisted ("Premium ", "pro", ...)

        Returns:
            Tier: The matching tier

        Raises:
            UnknownTierError: If the label is not in the registry
        """
        if isinstance(label, cls):
            return label
        if not isinstance(label, str):
            raise UnknownTierError(label)
        normalized = label.strip().lower()
        normalized = TIER_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError as exc:
            raise UnknownTierError(label) from exc


def tier_rank(label: "Tier | str") -> int:
    """Return the rank of a tier label, raising UnknownTierError when unknown."""
    return Tier.parse(label).rank


def parse_optional_tier(label: "Tier | str | None") -> Tier | None:
    """Parse a tier label where empty values mean "no tier requirement"."""
    if label is None:
        return None
    if isinstance(label, str) and not label.strip():
        return None
    return Tier.parse(label)
