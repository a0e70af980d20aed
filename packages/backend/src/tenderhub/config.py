"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with TENDERHUB_ prefix.

Learn: the bid admission quota, its window and the sweep interval are
settings, so an operator can tune burst behaviour per deployment and a
test can build its own controller with a different window.
"""

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All app configuration. Set via TENDERHUB_* env vars."""

    # Auth
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    # Server
    environment: str = "development"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000

    # CORS
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    # Bid admission control (fixed window per contractor)
    bid_rate_limit: int = 5  # submissions per window
    bid_rate_window_seconds: float = 60.0
    rate_limit_sweep_seconds: float = 60.0

    # Notification registry policies
    close_superseded_connections: bool = False
    unregister_on_send_failure: bool = False

    model_config = {"env_prefix": "TENDERHUB_"}

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Ensure sensitive defaults are changed in non-development environments."""
        if (
            self.environment != "development"
            and self.jwt_secret == "change-me-in-production"
        ):
            raise ValueError(
                "TENDERHUB_JWT_SECRET must be set to a secure value in "
                "non-development environments."
            )
        if self.bid_rate_limit < 1:
            raise ValueError("TENDERHUB_BID_RATE_LIMIT must be at least 1")
        if self.bid_rate_window_seconds <= 0 or self.rate_limit_sweep_seconds <= 0:
            raise ValueError("Rate limit window and sweep interval must be positive")
        return self


# Singleton — import this everywhere
settings = Settings()
