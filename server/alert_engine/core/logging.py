from __future__ import annotations
"""server/alert_engine/core/logging.py
~~~~~~~~~~~~~~~~~~~~~~~~
Configuration logs.
"""
import logging


def setup_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    # le SDK Twilio loggue chaque requête HTTP en INFO
    logging.getLogger("twilio.http_client").setLevel(logging.WARNING)
