from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    project_name: str = "Spot Hunt Engine"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO")

    mongodb_uri: str = Field(default="mongodb://mongo:27017")
    mongodb_db: str = Field(default="spothunt")

    redis_url: str = Field(default="redis://redis:6379/0")

    # Upper bound for a single storage round-trip; expiry surfaces as StorageTimeout
    storage_timeout_seconds: float = Field(default=2.0, gt=0)

    # Gameplay thresholds. Defaults pending product confirmation.
    default_radius_meters: float = Field(default=100.0, gt=0)
    max_accuracy_meters: float = Field(default=50.0, gt=0)
    daily_submission_cap: int = Field(default=10, gt=0)
    hourly_submission_cap: int = Field(default=0, ge=0, description="0 disables the hourly cap")
    max_travel_speed_kmh: float = Field(default=200.0, gt=0)
    clock_skew_tolerance_seconds: int = Field(default=600, ge=0)
    min_submission_interval_seconds: int = Field(default=60, ge=0)

    # Tokens are issued by the auth service; this engine only verifies them
    jwt_secret_key: str = Field(default="change-me")
    jwt_algorithm: str = Field(default="HS256")

    admin_user_ids: str = Field(default="")

    cors_origins: str = Field(default="http://localhost:5173,http://localhost:3000,http://localhost")

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def admin_user_id_set(self) -> set[str]:
        return {user_id.strip() for user_id in self.admin_user_ids.split(",") if user_id.strip()}


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]


settings = get_settings()
