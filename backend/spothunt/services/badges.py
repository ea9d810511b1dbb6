from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class UserStats:
    accepted_count: int = 0
    points: int = 0
    tier_counts: dict[str, int] = field(default_factory=dict)
    categories: frozenset[str] = frozenset()

    @classmethod
    def from_profile(cls, doc: dict[str, Any]) -> "UserStats":
        return cls(
            accepted_count=int(doc.get("accepted_count", 0)),
            points=int(doc.get("points", 0)),
            tier_counts={k: int(v) for k, v in (doc.get("tier_counts") or {}).items()},
            categories=frozenset(doc.get("categories", [])),
        )


@dataclass(frozen=True)
class BadgeDefinition:
    id: str
    name: str
    description: str
    predicate: Callable[[UserStats], bool]


def _accepted(n: int) -> Callable[[UserStats], bool]:
    return lambda stats: stats.accepted_count >= n


def _points(n: int) -> Callable[[UserStats], bool]:
    return lambda stats: stats.points >= n


def _tier(tier: str, n: int) -> Callable[[UserStats], bool]:
    return lambda stats: stats.tier_counts.get(tier, 0) >= n


def _categories(n: int) -> Callable[[UserStats], bool]:
    return lambda stats: len(stats.categories) >= n


# Order matters: simultaneous unlocks are awarded (and notified) in this order.
BADGES: tuple[BadgeDefinition, ...] = (
    BadgeDefinition("first_steps", "First Steps", "Complete your first challenge", _accepted(1)),
    BadgeDefinition("explorer", "Explorer", "Complete 5 challenges", _accepted(5)),
    BadgeDefinition("regular", "Regular", "Complete 10 challenges", _accepted(10)),
    BadgeDefinition("adventurer", "Adventurer", "Complete 15 challenges", _accepted(15)),
    BadgeDefinition("treasure_hunter", "Treasure Hunter", "Complete 50 challenges", _accepted(50)),
    BadgeDefinition("legend", "Legend", "Complete 100 challenges", _accepted(100)),
    BadgeDefinition("point_collector", "Point Collector", "Earn 100 total points", _points(100)),
    BadgeDefinition("high_scorer", "High Scorer", "Earn 500 total points", _points(500)),
    BadgeDefinition("point_master", "Point Master", "Earn 1000 total points", _points(1000)),
    BadgeDefinition("easy_master", "Easy Master", "Complete 10 easy challenges", _tier("easy", 10)),
    BadgeDefinition("medium_master", "Medium Master", "Complete 10 medium challenges", _tier("medium", 10)),
    BadgeDefinition("hard_master", "Hard Master", "Complete 10 hard challenges", _tier("hard", 10)),
    BadgeDefinition("well_rounded", "Well Rounded", "Complete challenges in 3 categories", _categories(3)),
    BadgeDefinition("local_legend", "Local Legend", "Complete challenges in 5 categories", _categories(5)),
)

BADGES_BY_ID: dict[str, BadgeDefinition] = {badge.id: badge for badge in BADGES}

MILESTONES: tuple[tuple[int, str], ...] = (
    (100, "Point Collector"),
    (250, "Rising Star"),
    (500, "High Scorer"),
    (1000, "Point Master"),
    (2500, "Elite Player"),
    (5000, "Legend"),
)


def newly_unlocked(stats: UserStats, held: Iterable[str]) -> list[BadgeDefinition]:
    """Badges whose predicate holds for ``stats`` and that are not yet held, in catalog order."""
    held_ids = set(held)
    return [badge for badge in BADGES if badge.id not in held_ids and badge.predicate(stats)]


def milestone_progress(points: int) -> dict[str, int | str]:
    for threshold, title in MILESTONES:
        if points < threshold:
            return {"next_milestone": threshold, "points_needed": threshold - points, "title": title}
    return {"next_milestone": points + 1000, "points_needed": 1000, "title": "Master Level"}
