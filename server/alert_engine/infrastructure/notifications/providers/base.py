from __future__ import annotations
"""server/alert_engine/infrastructure/notifications/providers/base.py
~~~~~~~~~~~~~~~~~~~~~~~~
Contrat NotificationProvider.

Un provider ne lève jamais : tout échec (réseau, HTTP, SMTP, config) est
rendu sous forme de SendResult(success=False, error="...").
"""

import logging
import uuid
from typing import Optional, Protocol

from alert_engine.domain.types import Channel, SendResult

logger = logging.getLogger(__name__)


class NotificationProvider(Protocol):
    def send(self, channel: Channel, destination: str, body: str, *, subject: Optional[str] = None) -> SendResult:
        ...


class LoggingProvider:
    """
    Provider "stub" (STUB_PROVIDERS=1) : n'envoie rien, loggue le message et
    renvoie un id fictif. Utile en dev et en démo.
    """

    def send(self, channel: Channel, destination: str, body: str, *, subject: Optional[str] = None) -> SendResult:
        message_id = f"stub-{uuid.uuid4().hex[:16]}"
        logger.info(
            "[STUB] %s -> %s (%d chars)", Channel(channel).value, destination, len(body),
            extra={"provider_message_id": message_id, "subject": subject},
        )
        return SendResult(success=True, provider_message_id=message_id)


class UnconfiguredProvider:
    """Canal sans credentials : chaque envoi échoue proprement."""

    def __init__(self, reason: str):
        self.reason = reason

    def send(self, channel: Channel, destination: str, body: str, *, subject: Optional[str] = None) -> SendResult:
        return SendResult(success=False, error=self.reason)
