"""VIP tiers derived from all-time wager.

Each tier unlocks at a minimum cumulative wager and is split into four levels
(XP thresholds). Copper is the entry tier and has a single level.
"""

import math
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class TierLevel:
    name: str
    xp: float


@dataclass(frozen=True)
class TierDefinition:
    key: str
    name: str
    min_wager: float
    color: str
    benefits: tuple[str, ...] = ()
    levels: tuple[TierLevel, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "minWager": self.min_wager,
            "color": self.color,
            "benefits": list(self.benefits),
            "levels": [{"name": level.name, "xp": level.xp} for level in self.levels],
        }


def _levels(name: str, *thresholds: float) -> tuple[TierLevel, ...]:
    return tuple(TierLevel(f"{name} {i}", xp) for i, xp in enumerate(thresholds, start=1))


# Ordered lowest to highest
TIERS: tuple[TierDefinition, ...] = (
    TierDefinition(
        key="copper",
        name="Copper",
        min_wager=0,
        color="#B87333",
        benefits=("Access to basic races",),
        levels=(TierLevel("Copper 1", 0),),
    ),
    TierDefinition(
        key="bronze",
        name="Bronze",
        min_wager=1_000,
        color="#CD7F32",
        benefits=("Instant Rakeback", "Level Up Bonus", "Weekly Bonus"),
        levels=_levels("Bronze", 1_000, 2_000, 3_000, 4_000),
    ),
    TierDefinition(
        key="silver",
        name="Silver",
        min_wager=10_000,
        color="#C0C0C0",
        benefits=("All Bronze benefits", "Monthly Bonus", "Bonus Increase"),
        levels=_levels("Silver", 10_000, 20_000, 30_000, 40_000),
    ),
    TierDefinition(
        key="gold",
        name="Gold",
        min_wager=100_000,
        color="#FFD700",
        benefits=("All Silver benefits", "Referral Increase", "Loss Back Bonus"),
        levels=_levels("Gold", 100_000, 150_000, 200_000, 250_000),
    ),
    TierDefinition(
        key="platinum",
        name="Platinum",
        min_wager=450_000,
        color="#E5E4E2",
        benefits=("All Gold benefits", "Higher bonuses", "Premium rewards"),
        levels=_levels("Platinum", 450_000, 600_000, 750_000, 900_000),
    ),
    TierDefinition(
        key="pearl",
        name="Pearl",
        min_wager=1_500_000,
        color="#FAEBD7",
        benefits=("All Platinum benefits", "VIP Host"),
        levels=_levels("Pearl", 1_500_000, 1_650_000, 1_800_000, 2_000_000),
    ),
    TierDefinition(
        key="sapphire",
        name="Sapphire",
        min_wager=3_000_000,
        color="#0F52BA",
        benefits=("All Pearl benefits", "Elite VIP events", "Highest cashback rates"),
        levels=_levels("Sapphire", 3_000_000, 3_750_000, 4_500_000, 5_250_000),
    ),
    TierDefinition(
        key="emerald",
        name="Emerald",
        min_wager=7_000_000,
        color="#50C878",
        benefits=("All Sapphire benefits", "Goated Event Invitations", "Tailor-made promotions"),
        levels=_levels("Emerald", 7_000_000, 9_000_000, 11_000_000, 13_000_000),
    ),
    TierDefinition(
        key="diamond",
        name="Diamond",
        min_wager=20_000_000,
        color="#B9F2FF",
        benefits=("All Emerald benefits", "Unlimited privileges"),
        levels=_levels("Diamond", 20_000_000, 25_000_000, 30_000_000, 35_000_000),
    ),
)

_BY_KEY = {tier.key: tier for tier in TIERS}


@dataclass
class TierProgress:
    current: TierDefinition
    next: TierDefinition | None
    percentage: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "current": self.current.to_dict(),
            "next": self.next.to_dict() if self.next else None,
            "percentage": self.percentage,
        }


def _to_amount(amount: float | int | str | None) -> float:
    if amount is None:
        return 0.0
    if isinstance(amount, str):
        try:
            amount = float(amount.replace(",", "").strip())
        except ValueError:
            return 0.0
    value = float(amount)
    if math.isnan(value) or value < 0:
        return 0.0
    return value


def get_tier(key: str) -> TierDefinition | None:
    return _BY_KEY.get(key.lower())


def get_tier_from_wager(amount: float | int | str | None) -> TierDefinition:
    """Highest tier whose minimum wager is reached. Invalid amounts map to copper."""
    value = _to_amount(amount)
    current = TIERS[0]
    for tier in TIERS:
        if value >= tier.min_wager:
            current = tier
    return current


def get_next_tier(key: str) -> TierDefinition | None:
    """Tier after `key`, or None at the top (or for unknown keys)."""
    for index, tier in enumerate(TIERS):
        if tier.key == key.lower():
            return TIERS[index + 1] if index + 1 < len(TIERS) else None
    return None


def get_tier_level(amount: float | int | str | None) -> TierLevel:
    """Highest level reached within the current tier."""
    value = _to_amount(amount)
    tier = get_tier_from_wager(value)
    level = tier.levels[0]
    for candidate in tier.levels:
        if value >= candidate.xp:
            level = candidate
    return level


def get_tier_progress(amount: float | int | str | None) -> TierProgress:
    """Progress from the current tier's minimum towards the next tier, in percent."""
    value = _to_amount(amount)
    current = get_tier_from_wager(value)
    nxt = get_next_tier(current.key)
    if nxt is None:
        return TierProgress(current=current, next=None, percentage=100.0)

    span = nxt.min_wager - current.min_wager
    percentage = (value - current.min_wager) / span * 100
    percentage = min(100.0, max(0.0, percentage))
    return TierProgress(current=current, next=nxt, percentage=round(percentage, 2))
