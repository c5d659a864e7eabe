# server/alert_engine/core/utils/ids.py
import uuid
from typing import Optional, Union


def coerce_uuid(v: Union[str, uuid.UUID, None]) -> Optional[uuid.UUID]:
    """Convertit str → UUID (ou passe-through) ; None si invalide."""
    if v is None:
        return None
    if isinstance(v, uuid.UUID):
        return v
    try:
        return uuid.UUID(str(v))
    except (TypeError, ValueError):
        return None
