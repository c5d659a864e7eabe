# server/alert_engine/infrastructure/notifications/providers/email_provider.py

import smtplib
from email.mime.text import MIMEText
from email.utils import make_msgid
from typing import Optional

from alert_engine.domain.types import Channel, SendResult


class EmailProvider:
    """
    Envoi d'e-mails via SMTP simple (texte).
    Pré-requis: host et adresse d'expéditeur.
    """

    def __init__(
        self,
        *,
        host: Optional[str],
        sender: Optional[str],
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
    ):
        if not host:
            raise ValueError("SMTP_HOST not configured")
        if not sender:
            raise ValueError("SMTP_FROM not configured")

        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.sender = sender

    def send(self, channel: Channel, destination: str, body: str, *, subject: Optional[str] = None) -> SendResult:
        msg = MIMEText(body, _charset="utf-8")
        msg["Subject"] = subject or "Maritime alert"
        msg["From"] = self.sender
        msg["To"] = destination
        msg["Message-ID"] = make_msgid(domain=self.sender.rpartition("@")[2] or None)

        try:
            server = smtplib.SMTP(self.host, self.port, timeout=10)
        except (OSError, smtplib.SMTPException) as exc:
            return SendResult(success=False, error=f"SMTP connect failed: {exc}")

        try:
            if self.use_tls:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            refused = server.sendmail(self.sender, [destination], msg.as_string())
            if refused:
                return SendResult(success=False, error=f"recipient refused: {refused}")
            return SendResult(success=True, provider_message_id=msg.get("Message-ID"))
        except (OSError, smtplib.SMTPException) as exc:
            return SendResult(success=False, error=f"{type(exc).__name__}: {exc}")
        finally:
            try:
                server.quit()
            except (OSError, smtplib.SMTPException):
                pass
