from fastapi import APIRouter

from .routes import admin, challenges, config, health, leaderboard, submissions, users

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(config.router, prefix="/config", tags=["config"])
api_router.include_router(submissions.router, prefix="/submissions", tags=["submissions"])
api_router.include_router(leaderboard.router, prefix="/leaderboard", tags=["leaderboard"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(challenges.router, prefix="/challenges", tags=["challenges"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
