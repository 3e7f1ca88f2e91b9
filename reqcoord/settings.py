import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


class Settings(BaseModel):
    # Remote API
    api_base_url: str = Field(default="http://localhost:5000", alias="API_BASE_URL")
    api_root: str = Field(default="/api", alias="API_ROOT")
    request_timeout: float = Field(default=30.0, alias="REQUEST_TIMEOUT")

    # Endpoint grouping (segments below API_ROOT that form one breaker's scope)
    endpoint_group_depth: int = Field(default=1, ge=1, alias="ENDPOINT_GROUP_DEPTH")

    # Circuit breaker
    breaker_failure_threshold: int = Field(default=3, ge=1, alias="BREAKER_FAILURE_THRESHOLD")
    breaker_reset_timeout: float = Field(default=30.0, gt=0, alias="BREAKER_RESET_TIMEOUT")

    # Cache (seconds)
    cache_ttl: float = Field(default=30.0, gt=0, alias="CACHE_TTL")
    cache_max_size: int = Field(default=500, ge=1, alias="CACHE_MAX_SIZE")
    cache_sweep_max_age: float = Field(default=300.0, gt=0, alias="CACHE_SWEEP_MAX_AGE")

    # Diagnostics
    stats_interval_seconds: int = Field(default=10, ge=1, alias="STATS_INTERVAL")
    debug_request_manager: bool = Field(default=False, alias="DEBUG_REQUEST_MANAGER")

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment (after .env is loaded)."""
        return cls.model_validate(dict(os.environ))
