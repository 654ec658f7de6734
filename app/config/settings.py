from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


AUTHORIZATION_MODES = ("strict-owner", "shared")


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Used for ledger writes when RLS is enabled

    # Generation API (v0)
    v0_api_key: Optional[str] = None
    v0_api_url: str = "https://api.v0.dev/v1"

    # Source-control hosts
    github_token: Optional[str] = None
    github_api_url: str = "https://api.github.com"
    bitbucket_username: Optional[str] = None
    bitbucket_app_password: Optional[str] = None
    bitbucket_api_url: str = "https://api.bitbucket.org/2.0"

    # Hosting platform (Vercel)
    vercel_token: Optional[str] = None
    vercel_api_url: str = "https://api.vercel.com"
    vercel_team_slug: Optional[str] = None  # Dashboard URLs fall back to the project's accountId
    hosting_framework: str = "nextjs"

    # Public UI component registry
    component_registry_url: str = "https://ui.shadcn.com"

    # Pipeline
    project_settle_seconds: float = 20.0
    http_timeout_seconds: float = 30.0
    authorization_mode: str = "strict-owner"  # strict-owner | shared

    # App
    app_name: str = "sitedeploy-backend"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"

    @field_validator("authorization_mode")
    @classmethod
    def check_authorization_mode(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in AUTHORIZATION_MODES:
            raise ValueError(f"authorization_mode must be one of {AUTHORIZATION_MODES}")
        return value

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_shared_mode(self) -> bool:
        return self.authorization_mode == "shared"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
