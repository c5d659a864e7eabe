from __future__ import annotations
"""server/alert_engine/infrastructure/notifications/providers/registry.py
~~~~~~~~~~~~~~~~~~~~~~~~
Association canal → provider, construite depuis la config.
"""

import logging
from typing import Mapping, Optional

from alert_engine.core.config import Settings
from alert_engine.domain.types import Channel, SendResult
from alert_engine.infrastructure.notifications.providers.base import (
    LoggingProvider,
    NotificationProvider,
    UnconfiguredProvider,
)
from alert_engine.infrastructure.notifications.providers.email_provider import EmailProvider
from alert_engine.infrastructure.notifications.providers.twilio_provider import TwilioProvider

logger = logging.getLogger(__name__)


class ProviderRegistry:
    def __init__(self, providers: Mapping[Channel, NotificationProvider]):
        self._providers = {Channel(k): v for k, v in providers.items()}

    def get(self, channel: Channel) -> NotificationProvider:
        provider = self._providers.get(Channel(channel))
        if provider is None:
            return UnconfiguredProvider(f"no provider for channel {Channel(channel).value}")
        return provider

    def send(self, channel: Channel, destination: str, body: str, *, subject: Optional[str] = None) -> SendResult:
        """Envoi protégé : une exception inattendue du provider devient un SendResult en échec."""
        try:
            return self.get(channel).send(channel, destination, body, subject=subject)
        except Exception as exc:
            logger.exception("provider crashed on %s", Channel(channel).value)
            return SendResult(success=False, error=f"provider error: {type(exc).__name__}: {exc}")


def build_registry(cfg: Settings) -> ProviderRegistry:
    if cfg.STUB_PROVIDERS:
        stub = LoggingProvider()
        return ProviderRegistry({c: stub for c in Channel})

    providers: dict[Channel, NotificationProvider] = {}
    if cfg.TWILIO_ACCOUNT_SID and cfg.TWILIO_AUTH_TOKEN:
        twilio = TwilioProvider(
            account_sid=cfg.TWILIO_ACCOUNT_SID,
            auth_token=cfg.TWILIO_AUTH_TOKEN,
            from_number=cfg.TWILIO_FROM_NUMBER,
            whatsapp_from=cfg.TWILIO_WHATSAPP_FROM,
        )
        providers.update({Channel.SMS: twilio, Channel.WHATSAPP: twilio, Channel.VOICE: twilio})
    else:
        logger.warning("Twilio not configured: sms/whatsapp/voice deliveries will fail")

    if cfg.SMTP_HOST and cfg.SMTP_FROM:
        providers[Channel.EMAIL] = EmailProvider(
            host=cfg.SMTP_HOST,
            sender=cfg.SMTP_FROM,
            port=cfg.SMTP_PORT,
            username=cfg.SMTP_USERNAME,
            password=cfg.SMTP_PASSWORD,
            use_tls=cfg.SMTP_USE_TLS,
        )
    else:
        logger.warning("SMTP not configured: email deliveries will fail")

    return ProviderRegistry(providers)
