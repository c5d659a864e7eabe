# server/alert_engine/domain/errors.py
from __future__ import annotations
"""
Hiérarchie d'exceptions du moteur.

- InvalidInputError : entrée mal formée (coordonnées, type, sévérité) → 422
- NotFoundError     : id inconnu (navire, évènement, alerte, politique) → 404

Les échecs providers ne sont PAS des exceptions (cf. SendResult), et un doublon
n'est pas une erreur (cf. RouteResult.is_duplicate).
"""

from typing import Any


class AlertEngineError(Exception):
    """Base de toutes les erreurs du moteur."""


class InvalidInputError(AlertEngineError, ValueError):
    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.field = field


class NotFoundError(AlertEngineError, LookupError):
    def __init__(self, resource: str, **identifiers: Any):
        ids = ", ".join(f"{k}={v}" for k, v in identifiers.items())
        super().__init__(f"{resource} not found" + (f" ({ids})" if ids else ""))
        self.resource = resource
        self.identifiers = identifiers
