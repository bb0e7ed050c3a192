"""Level curve and computation.

Cumulative XP needed to reach level ``n`` is ``base * (n - 1) ** exponent``,
so level 1 starts at 0 XP. The constants come from settings and the
frontend reads them through ``GET /api/v1/levels``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from functools import lru_cache

from techrec.config import get_settings
from techrec.gamification.enums import PROFILE_TIER_THRESHOLDS, ProfileTier
from techrec.gamification.errors import InvalidArgument

# Named bands: a level takes the title of the highest band at or below it.
LEVEL_TITLES: list[tuple[int, str]] = [
    (1, "Newcomer"),
    (2, "Apprentice"),
    (3, "Developer"),
    (4, "Professional"),
    (5, "Expert"),
    (10, "Specialist"),
    (15, "Senior"),
    (20, "Lead"),
    (25, "Principal"),
    (30, "Architect"),
]

# Largest float strictly below 1.0.
_BELOW_ONE = math.nextafter(1.0, 0.0)


def level_title(level: int) -> str:
    """Title for a level."""
    title = LEVEL_TITLES[0][1]
    for start, name in LEVEL_TITLES:
        if level >= start:
            title = name
    return title


@dataclass(frozen=True)
class LevelCurve:
    """Strictly increasing XP threshold curve."""

    base: float = 50.0
    exponent: float = 2.0
    max_level: int = 50

    def __post_init__(self) -> None:
        if self.base <= 0 or self.exponent <= 0:
            raise ValueError("Level curve base and exponent must be positive")
        if self.max_level < 2:
            raise ValueError("Level curve needs at least two levels")

    def threshold(self, level: int) -> int:
        """Cumulative XP required to reach ``level``."""
        if level <= 1:
            return 0
        return round(self.base * (level - 1) ** self.exponent)

    def level_for(self, total_xp: int) -> int:
        """Highest level whose threshold is at or below ``total_xp``."""
        if total_xp < 0:
            raise InvalidArgument("total_xp cannot be negative")
        # Closed-form estimate, then correct for float rounding.
        level = int((total_xp / self.base) ** (1 / self.exponent)) + 1
        level = max(1, min(level, self.max_level))
        while level < self.max_level and self.threshold(level + 1) <= total_xp:
            level += 1
        while level > 1 and self.threshold(level) > total_xp:
            level -= 1
        return level

    def compute(self, total_xp: int) -> dict:
        """Compute level info from total XP."""
        level = self.level_for(total_xp)
        current_xp = self.threshold(level)

        if level >= self.max_level:
            next_level = self.max_level
            next_xp = current_xp
            progress = 1.0
        else:
            next_level = level + 1
            next_xp = self.threshold(next_level)
            progress = (total_xp - current_xp) / (next_xp - current_xp)
            progress = min(max(progress, 0.0), _BELOW_ONE)

        return {
            "level": level,
            "title": level_title(level),
            "progress": progress,
            "current_level_xp": current_xp,
            "next_level_xp": next_xp,
            "xp_into_level": total_xp - current_xp,
            "xp_for_level": max(next_xp - current_xp, 1),
            "next_level": next_level,
            "next_title": level_title(next_level),
        }

    def table(self) -> list[dict]:
        """Every level with its threshold, for the levels endpoint."""
        return [
            {
                "level": n,
                "title": level_title(n),
                "xp_required": self.threshold(n) - self.threshold(n - 1) if n > 1 else 0,
                "cumulative": self.threshold(n),
            }
            for n in range(1, self.max_level + 1)
        ]


@lru_cache
def get_level_curve() -> LevelCurve:
    """Level curve built from settings."""
    settings = get_settings()
    return LevelCurve(
        base=settings.level_curve_base,
        exponent=settings.level_curve_exponent,
        max_level=settings.max_level,
    )


def compute_level(total_xp: int, curve: LevelCurve | None = None) -> dict:
    """Compute level info from total XP on the configured curve."""
    return (curve or get_level_curve()).compute(total_xp)


def compute_tier(total_xp: int) -> ProfileTier:
    """Profile tier reached with ``total_xp``."""
    tier = ProfileTier.BRONZE
    for candidate, required in PROFILE_TIER_THRESHOLDS:
        if total_xp >= required:
            tier = candidate
    return tier


def next_milestone(total_xp: int, curve: LevelCurve | None = None) -> dict:
    """Closest upcoming milestone: the next level or the next profile tier."""
    info = compute_level(total_xp, curve)
    current_tier = compute_tier(total_xp)

    next_tier_xp: int | None = None
    next_tier: ProfileTier | None = None
    for candidate, required in PROFILE_TIER_THRESHOLDS:
        if required > total_xp:
            next_tier, next_tier_xp = candidate, required
            break

    at_max_level = info["level"] == info["next_level"]
    if next_tier_xp is not None and (at_max_level or next_tier_xp < info["next_level_xp"]):
        return {
            "type": "tier",
            "target": next_tier_xp,
            "xp_needed": next_tier_xp - total_xp,
            "description": f"Reach {next_tier.value.title()} tier",  # type: ignore[union-attr]
        }
    if at_max_level:
        return {
            "type": "level",
            "target": info["current_level_xp"],
            "xp_needed": 0,
            "description": f"Max level reached ({current_tier.value.title()} tier)",
        }
    return {
        "type": "level",
        "target": info["next_level_xp"],
        "xp_needed": info["next_level_xp"] - total_xp,
        "description": f"Reach level {info['next_level']}",
    }
