from __future__ import annotations
"""
server/alert_engine/infrastructure/persistence/database/base.py

Base ORM SQLAlchemy 2.x.

Le `from ...models import *` ci-dessous remplit Base.metadata avec toutes
les tables : `Base.metadata.create_all(bind=engine)` (SQLite en tests)
crée ainsi le schéma complet.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base declarative pour tous les modèles."""
    pass


# Effet de bord voulu : enregistre toutes les tables.
from alert_engine.infrastructure.persistence.database.models import *  # noqa: F403,F401,E402

__all__ = ["Base"]
