from __future__ import annotations
"""server/alert_engine/core/security.py
~~~~~~~~~~~~~~~~~~~~~~~~
Contrôle d'accès opérateur (header X-API-Key).

L'authentification / RBAC du dashboard est hors périmètre : on ne vérifie ici
que la capacité "opérateur" via une liste de clés fournie par la config.
Si API_KEYS est vide, l'API est ouverte (dev / tests).
"""
import hmac
from typing import Optional

from fastapi import Header, HTTPException, status

from alert_engine.core.config import settings


async def operator_auth(
    x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
) -> Optional[str]:
    allowed = settings.api_keys()
    if not allowed:
        return None
    if not x_api_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing API key")
    if not any(hmac.compare_digest(x_api_key, k) for k in allowed):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid API key")
    return x_api_key
