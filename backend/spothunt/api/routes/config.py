from fastapi import APIRouter

from ...core.config import settings
from ...schemas.challenges import DIFFICULTY_POINTS

router = APIRouter()


@router.get("/rules", summary="Gameplay thresholds the engine currently enforces")
async def rules_config() -> dict:
    return {
        "defaultRadiusMeters": settings.default_radius_meters,
        "maxAccuracyMeters": settings.max_accuracy_meters,
        "dailySubmissionCap": settings.daily_submission_cap,
        "hourlySubmissionCap": settings.hourly_submission_cap,
        "maxTravelSpeedKmh": settings.max_travel_speed_kmh,
        "difficultyPoints": {tier.value: points for tier, points in DIFFICULTY_POINTS.items()},
    }
