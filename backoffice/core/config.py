from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TOKEN_SIGNING_SECRET = "grading-backoffice-dev-token-secret-change-me"
DEFAULT_ADMIN_API_KEY = "gb-admin-dev-key"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="GB_", extra="ignore")

    app_name: str = "Card Grading Back Office"
    env: str = "dev"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"

    database_url: str = "sqlite+pysqlite:///./backoffice.db"

    auth_enabled: bool = True
    admin_api_key: str = DEFAULT_ADMIN_API_KEY
    admin_actor_id: str = "admin-001"
    token_signing_secret: str = DEFAULT_TOKEN_SIGNING_SECRET
    claims_token_ttl_seconds: int = 3600

    public_grading_price: int | float = Field(default=350, gt=0)
    public_mysterypack_price: int | float = Field(default=150, gt=0)
    # Used when a store predates per-store pricing and has no price configured.
    fallback_store_grading_price: int | float = Field(default=280, gt=0)
    fallback_store_mysterypack_price: int | float = Field(default=120, gt=0)

    default_page_size: int = 20
    max_page_size: int = 100
    tracking_code_length: int = Field(default=8, ge=5, le=32)

    def model_post_init(self, __context) -> None:
        if self.env.lower() == "dev":
            return

        insecure_items: list[str] = []
        if self.token_signing_secret == DEFAULT_TOKEN_SIGNING_SECRET:
            insecure_items.append("GB_TOKEN_SIGNING_SECRET")
        if self.admin_api_key == DEFAULT_ADMIN_API_KEY:
            insecure_items.append("GB_ADMIN_API_KEY")

        if insecure_items:
            raise ValueError(
                "insecure default secrets are not allowed outside dev mode; set env vars: "
                + ", ".join(sorted(insecure_items))
            )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
