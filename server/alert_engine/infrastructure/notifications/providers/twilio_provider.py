from __future__ import annotations
"""server/alert_engine/infrastructure/notifications/providers/twilio_provider.py
~~~~~~~~~~~~~~~~~~~~~~~~
SMS / WhatsApp / appel vocal via le SDK Twilio (`twilio.rest.Client`).

- SMS et WhatsApp : client.messages.create (préfixe "whatsapp:" pour WhatsApp)
- Voix : client.calls.create avec un TwiML <Say> qui lit le message deux fois
"""

from typing import Optional

import requests
from twilio.base.exceptions import TwilioException, TwilioRestException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client
from twilio.twiml.voice_response import VoiceResponse

from alert_engine.domain.types import Channel, SendResult


class TwilioProvider:
    def __init__(
        self,
        *,
        account_sid: str,
        auth_token: str,
        from_number: Optional[str] = None,
        whatsapp_from: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[Client] = None,
    ):
        if not account_sid or not auth_token:
            raise ValueError("Twilio credentials must be provided")
        self.from_number = from_number
        self.whatsapp_from = whatsapp_from
        self.client = client or Client(account_sid, auth_token, http_client=TwilioHttpClient(timeout=timeout))

    def send(self, channel: Channel, destination: str, body: str, *, subject: Optional[str] = None) -> SendResult:
        channel = Channel(channel)
        if channel == Channel.SMS:
            return self._call(self.client.messages.create, to=destination, from_=self.from_number, body=body)
        if channel == Channel.WHATSAPP:
            sender = self.whatsapp_from or self.from_number
            return self._call(
                self.client.messages.create, to=_whatsapp(destination), from_=_whatsapp(sender), body=body
            )
        if channel == Channel.VOICE:
            return self._call(self.client.calls.create, to=destination, from_=self.from_number, twiml=_twiml(body))
        return SendResult(success=False, error=f"channel {channel.value} not supported by Twilio")

    def _call(self, create, **params) -> SendResult:
        if not params.get("from_"):
            return SendResult(success=False, error="Twilio sender number not configured")
        try:
            resource = create(**params)
        except TwilioRestException as exc:
            return SendResult(success=False, error=f"HTTP {exc.status} (code {exc.code}): {exc.msg}"[:500])
        except (TwilioException, requests.RequestException) as exc:
            return SendResult(success=False, error=f"{type(exc).__name__}: {exc}")
        return SendResult(success=True, provider_message_id=getattr(resource, "sid", None))


def _whatsapp(number: Optional[str]) -> Optional[str]:
    if not number:
        return number
    return number if number.startswith("whatsapp:") else f"whatsapp:{number}"


def _twiml(body: str) -> str:
    # Pas d'emoji à l'oral ; message répété une fois
    spoken = "".join(ch for ch in body if ch.isascii())
    response = VoiceResponse()
    response.say(spoken, voice="alice")
    response.pause(length=1)
    response.say(f"Repeating. {spoken}", voice="alice")
    return str(response)
