from __future__ import annotations
"""server/alert_engine/core/config.py
~~~~~~~~~~~~~~~~~~~~~~~~
Paramètres (pydantic-settings).

Toutes les valeurs sont surchargeables par variables d'environnement
(noms sensibles à la casse). Les structures (rayons, rate limits) se passent
en JSON, ex : DANGER_ZONE_RADII='{"earthquake": {"critical": 80, ...}}'.
"""

from typing import Dict, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from alert_engine.domain.geo import DEFAULT_DANGER_ZONE_RADII, validate_radii


class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql+psycopg://postgres:postgres@db:5432/alerts"
    DB_CONNECT_TIMEOUT: int = 5
    REDIS_URL: str = "redis://redis:6379/0"

    # Zones de danger (km) par type d'évènement puis par palier
    DANGER_ZONE_RADII: Dict[str, Dict[str, float]] = Field(
        default_factory=lambda: {k: dict(v) for k, v in DEFAULT_DANGER_ZONE_RADII.items()}
    )

    # Cycle de vie / anti-doublon
    MAX_DELIVERY_ATTEMPTS: int = 3
    DUPLICATE_WINDOW_HOURS: int = 24
    ALERT_TTL_HOURS: int = 24

    # Boucles périodiques
    SWEEP_INTERVAL_SECONDS: int = 300
    ESCALATION_POLL_SECONDS: int = 30
    EXPIRY_SWEEP_SECONDS: int = 600
    DELIVERY_REQUEUE_SECONDS: int = 300

    VESSEL_POSITION_MAX_AGE_MINUTES: int = 60
    EVENT_MAX_AGE_HOURS: int = 24
    PROXIMITY_WORKERS: int = 4
    ESCALATION_BATCH_SIZE: int = 100
    ESCALATION_LEASE_SECONDS: int = 120
    DELIVERY_REQUEUE_AFTER_MINUTES: int = 10
    DELIVERY_RATE_LIMITS: Dict[str, str] = Field(
        default_factory=lambda: {"sms": "60/m", "whatsapp": "60/m", "email": "120/m", "voice": "20/m"}
    )

    # Providers
    STUB_PROVIDERS: bool = False
    TWILIO_ACCOUNT_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[str] = None
    TWILIO_FROM_NUMBER: Optional[str] = None
    TWILIO_WHATSAPP_FROM: Optional[str] = None
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_USE_TLS: bool = True
    SMTP_FROM: Optional[str] = None

    # API
    APP_BASE_URL: str = "http://localhost:3000"
    API_KEYS: Optional[str] = None
    CORS_ALLOW_ORIGINS: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    @field_validator("DANGER_ZONE_RADII")
    @classmethod
    def check_radii(cls, v: Dict[str, Dict[str, float]]):
        # Une surcharge partielle ne remplace que les types nommés
        merged = {k: dict(t) for k, t in DEFAULT_DANGER_ZONE_RADII.items()}
        merged.update({k: dict(t) for k, t in v.items()})
        validate_radii(merged)
        return merged

    @field_validator("MAX_DELIVERY_ATTEMPTS", "DUPLICATE_WINDOW_HOURS", "ALERT_TTL_HOURS", "PROXIMITY_WORKERS")
    @classmethod
    def strictly_positive(cls, v: int):
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    def api_keys(self) -> set[str]:
        return {k.strip() for k in (self.API_KEYS or "").split(",") if k.strip()}


settings = Settings()
