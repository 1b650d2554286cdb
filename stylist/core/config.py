from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PLACEHOLDER_MARKERS = ("your-", "placeholder", "example")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "development"
    log_level: str = "INFO"
    frontend_url: str = "http://localhost:5173"
    cors_extra_origins: str = ""

    chat_client_id: str = ""
    chat_client_secret: str = ""
    chat_scope: str = "GIGACHAT_API_PERS"
    chat_auth_url: str = "https://ngw.devices.sberbank.ru:9443/api/v2/oauth"
    chat_api_url: str = "https://gigachat.devices.sberbank.ru/api/v1"
    chat_model: str = "GigaChat:latest"
    chat_temperature: float = 0.7
    chat_max_tokens: int = 1000
    chat_timeout_sec: float = 30.0
    chat_verify_tls: bool = True
    chat_token_safety_margin_sec: int = 60
    chat_fallback_token_ttl_sec: int = 60

    marketplaces: str = "wildberries"
    marketplace_timeout_sec: float = Field(default=10.0, ge=1.0, le=30.0)
    html_timeout_sec: float = Field(default=15.0, ge=1.0, le=30.0)
    marketplace_page_size: int = 20
    wb_dest: str = "-1257786"
    product_cache_ttl_sec: int = 300

    relevance_weight_category: float = 0.3
    relevance_weight_name: float = 0.4
    relevance_weight_color: float = 0.2
    relevance_weight_style: float = 0.1
    min_relevance_score: float = 0.3
    products_per_item: int = 5

    generation_timeout_sec: float = 40.0

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"

    @property
    def chat_credentials_configured(self) -> bool:
        return is_real_credential(self.chat_client_id) and is_real_credential(self.chat_client_secret)

    @property
    def enabled_marketplaces(self) -> list[str]:
        return [m.strip().lower() for m in self.marketplaces.split(",") if m.strip()]


def is_real_credential(value: str | None) -> bool:
    text = (value or "").strip().lower()
    if not text:
        return False
    return not any(marker in text for marker in PLACEHOLDER_MARKERS)


settings = Settings()
