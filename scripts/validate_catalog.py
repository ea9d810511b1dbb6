from __future__ import annotations

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))

from backend.scripts.init_challenges import CHALLENGES  # noqa: E402
from backend.spothunt.core.errors import InvalidCoordinate  # noqa: E402
from backend.spothunt.schemas import ChallengeIn  # noqa: E402
from backend.spothunt.services.badges import BADGES, MILESTONES  # noqa: E402
from backend.spothunt.services.geolocation import validate_coordinate  # noqa: E402


def check_badges() -> list[str]:
    problems: list[str] = []
    ids = [badge.id for badge in BADGES]
    duplicates = sorted({badge_id for badge_id in ids if ids.count(badge_id) > 1})
    if duplicates:
        problems.append(f"duplicate badge ids: {', '.join(duplicates)}")
    for badge in BADGES:
        if not badge.name or not badge.description:
            problems.append(f"badge {badge.id} has no name or description")
    thresholds = [threshold for threshold, _ in MILESTONES]
    if thresholds != sorted(set(thresholds)):
        problems.append("milestones must be strictly increasing")
    return problems


def check_seed_challenges() -> list[str]:
    problems: list[str] = []
    for challenge_id, data in CHALLENGES.items():
        try:
            ChallengeIn(**data)
            validate_coordinate(data["latitude"], data["longitude"])
        except (ValueError, InvalidCoordinate) as exc:
            problems.append(f"seed challenge {challenge_id} is invalid: {exc}")
    return problems


def main() -> int:
    issues: list[str] = []
    issues.extend(check_badges())
    issues.extend(check_seed_challenges())

    if issues:
        for issue in issues:
            print(f"[warning] {issue}", file=sys.stderr)
        return 1

    print("Badge catalog and seed challenges are consistent.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
