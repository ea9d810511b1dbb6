"""
Seed a handful of Detroit spots as published challenges.

Safe to re-run: each challenge is published under a fixed id, so a second
run replaces the stored version instead of adding duplicates.
"""

import asyncio
import sys
from pathlib import Path

# make ``backend`` importable when run as a plain script
project_root = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(project_root))

from backend.spothunt.core.clock import utcnow  # noqa: E402
from backend.spothunt.db.mongo import MongoConnectionManager  # noqa: E402
from backend.spothunt.schemas import ChallengeIn  # noqa: E402
from backend.spothunt.services.challenges import publish_challenge  # noqa: E402

CHALLENGES: dict[str, dict] = {
    "campus-martius": {
        "title": "Skate at Campus Martius",
        "category": "outdoors",
        "spot_name": "Campus Martius Park",
        "address": "800 Woodward Ave, Detroit, MI 48226",
        "latitude": 42.3314,
        "longitude": -83.0458,
        "difficulty": "easy",
    },
    "eastern-market": {
        "title": "Saturday at Eastern Market",
        "category": "food",
        "spot_name": "Eastern Market",
        "address": "2934 Russell St, Detroit, MI 48207",
        "latitude": 42.3466,
        "longitude": -83.0417,
        "difficulty": "easy",
    },
    "dia-rivera-court": {
        "title": "Find the Rivera Court murals",
        "category": "culture",
        "spot_name": "Detroit Institute of Arts",
        "address": "5200 Woodward Ave, Detroit, MI 48202",
        "latitude": 42.3594,
        "longitude": -83.0645,
        "radius_meters": 150,
        "difficulty": "medium",
    },
    "belle-isle-conservatory": {
        "title": "Visit the Belle Isle Conservatory",
        "category": "outdoors",
        "spot_name": "Anna Scripps Whitcomb Conservatory",
        "address": "4 Inselruhe Ave, Detroit, MI 48207",
        "latitude": 42.3386,
        "longitude": -82.9842,
        "difficulty": "medium",
    },
    "guardian-building": {
        "title": "Look up in the Guardian Building lobby",
        "category": "architecture",
        "spot_name": "Guardian Building",
        "address": "500 Griswold St, Detroit, MI 48226",
        "latitude": 42.3297,
        "longitude": -83.0459,
        "radius_meters": 60,
        "difficulty": "hard",
    },
}


async def init_challenges() -> None:
    db = MongoConnectionManager.get_database()
    print("Publishing seed challenges...")
    for challenge_id, data in CHALLENGES.items():
        challenge = await publish_challenge(db, challenge_id, ChallengeIn(**data), utcnow())
        print(f"  published {challenge.id} ({challenge.difficulty.value}, {challenge.points} pts)")
    print(f"{len(CHALLENGES)} challenges ready.")


async def main() -> None:
    try:
        await init_challenges()
    finally:
        await MongoConnectionManager.close()


if __name__ == "__main__":
    asyncio.run(main())
