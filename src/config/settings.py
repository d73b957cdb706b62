from __future__ import annotations

from functools import lru_cache

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str
    log_level: str = "INFO"
    environment: str = "dev"
    jwt_secret_key: SecretStr
    jwt_algorithm: str = "HS256"
    jwt_access_token_expires_minutes: int = 60
    jwt_issuer: str | None = None
    jwt_audience: str | None = None
    # CORS
    cors_allow_origins: str = "*"
    # Push (FCM HTTP v1)
    fcm_project_id: str | None = None
    fcm_service_account_json: SecretStr | None = None  # Service Account JSON
    fcm_service_account_file: str | None = None  # Path or inline JSON
    push_batch_size: int = 500  # FCM per-call token limit
    push_default_topic: str = "all_users"
    push_click_action: str = "FLUTTER_NOTIFICATION_CLICK"
    push_timeout_seconds: float = 10.0
    # Live connections
    elevated_roles: str = "admin,staff,super_admin"
    admin_room: str = "admin-room"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @field_validator("database_url")
    @classmethod
    def ensure_asyncpg_scheme(cls, value: str) -> str:
        if value.startswith("postgres://"):
            return value.replace("postgres://", "postgresql+asyncpg://", 1)
        if value.startswith("postgresql://") and "+" not in value.split("://", 1)[0]:
            return value.replace("postgresql://", "postgresql+asyncpg://", 1)
        return value

    @property
    def cors_allow_origins_list(self) -> list[str]:
        """Convert cors_allow_origins string to list"""
        if isinstance(self.cors_allow_origins, str):
            return [v.strip() for v in self.cors_allow_origins.split(",") if v.strip()]
        return self.cors_allow_origins

    @property
    def elevated_roles_set(self) -> frozenset[str]:
        return frozenset(
            role.strip().lower() for role in self.elevated_roles.split(",") if role.strip()
        )

    def get_fcm_service_account_json(self) -> str | None:
        """
        Return the Service Account JSON string for FCM v1 from either
        fcm_service_account_json (direct JSON) or fcm_service_account_file.
        If fcm_service_account_file starts with '{', treat as inline JSON; otherwise read file.
        """
        if self.fcm_service_account_json:
            return self.fcm_service_account_json.get_secret_value()
        if self.fcm_service_account_file:
            content = self.fcm_service_account_file
            content = content.strip()
            if content.startswith("{"):
                return content
            # treat as path
            try:
                with open(content, encoding="utf-8") as f:
                    return f.read()
            except OSError:
                return None
        return None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
