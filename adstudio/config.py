from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="AD_STUDIO_", env_file=".env", env_file_encoding="utf-8")

    app_name: str = "ad-studio"
    host: str = "0.0.0.0"
    port: int = 8100

    # Batch pricing
    batch_size: int = Field(default=3, ge=1)
    price_per_unit: int = Field(default=10, ge=0)
    low_balance_floor: int = Field(default=10, ge=0)
    default_credits: int = Field(default=100, ge=0)

    # Progress simulation, milliseconds of virtual time
    start_delay_ms: float = 500.0
    tick_min_ms: float = 400.0
    tick_max_ms: float = 1000.0
    max_increment: int = Field(default=15, ge=1)
    done_delay_ms: float = 800.0
    time_scale: float = 1.0

    # Generation backend: "stub" or "external"
    generation_backend: str = "stub"
    generation_timeout_seconds: float | None = None
    external_generation_url: str = ""
    external_generation_api_key: str = ""
    external_generation_timeout: float = 120.0

    stub_latency_min_seconds: float = 0.5
    stub_latency_max_seconds: float = 2.0
    stub_failure_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    stub_media_base_url: str = "https://cdn.example.com/renders"
    image_to_video_enabled: bool = True

    # Script drafting through OpenRouter
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_model: str = "google/gemini-2.5-flash-preview-09-2025"
    openrouter_timeout: float = 30.0

    voice_catalog: list[dict[str, str]] = Field(
        default_factory=lambda: [
            {"voice_id": "aria", "name": "Aria", "description": "Warm, upbeat narrator"},
            {"voice_id": "leo", "name": "Leo", "description": "Calm, confident narrator"},
        ]
    )
    avatar_catalog: list[dict[str, str]] = Field(
        default_factory=lambda: [
            {"avatar_id": "maya", "name": "Maya"},
            {"avatar_id": "noah", "name": "Noah"},
        ]
    )

    @property
    def batch_cost(self) -> int:
        return self.price_per_unit * self.batch_size


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
