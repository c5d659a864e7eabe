# server/alert_engine/application/container.py
from __future__ import annotations
"""
Composition root : construit explicitement les services du moteur et leurs
dépendances (session factory, providers, file de livraison, horloge).

Un processus (API, worker Celery, test) construit SON AlertEngine et le passe
à ceux qui en ont besoin ; aucun service n'est récupéré par accesseur statique.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from alert_engine.core.config import Settings, settings as default_settings
from alert_engine.core.utils.datetime import utcnow
from alert_engine.application.services.alert_service import AlertLifecycleManager
from alert_engine.application.services.contact_resolver import ContactResolver
from alert_engine.application.services.delivery_service import DeliveryDispatcher, DeliveryQueue
from alert_engine.application.services.duplicate_suppressor import DuplicateSuppressor
from alert_engine.application.services.escalation_service import EscalationScheduler
from alert_engine.application.services.ingestion_service import IngestionService
from alert_engine.application.services.proximity_service import ProximityMonitor
from alert_engine.infrastructure.notifications.providers.registry import ProviderRegistry, build_registry
from alert_engine.infrastructure.persistence.database.session import init_sessionmaker


@dataclass
class AlertEngine:
    lifecycle: AlertLifecycleManager
    dispatcher: DeliveryDispatcher
    scheduler: EscalationScheduler
    resolver: ContactResolver
    suppressor: DuplicateSuppressor
    monitor: ProximityMonitor
    ingestion: IngestionService
    session_factory: Callable[[], Session]


def build_engine(
    *,
    session_factory: Optional[Callable[[], Session]] = None,
    providers: Optional[ProviderRegistry] = None,
    queue: Optional[DeliveryQueue] = None,
    clock: Callable[[], datetime] = utcnow,
    cfg: Optional[Settings] = None,
) -> AlertEngine:
    """
    `queue=None` : livraisons exécutées inline (tests, dev) ;
    en production on passe une CeleryDeliveryQueue.
    """
    cfg = cfg or default_settings
    session_factory = session_factory or init_sessionmaker()
    providers = providers or build_registry(cfg)

    resolver = ContactResolver(session_factory)
    suppressor = DuplicateSuppressor(session_factory, window_hours=cfg.DUPLICATE_WINDOW_HOURS, clock=clock)
    dispatcher = DeliveryDispatcher(
        session_factory,
        providers,
        queue=queue,
        max_attempts=cfg.MAX_DELIVERY_ATTEMPTS,
        base_url=cfg.APP_BASE_URL,
        requeue_after_minutes=cfg.DELIVERY_REQUEUE_AFTER_MINUTES,
        clock=clock,
    )
    scheduler = EscalationScheduler(
        session_factory,
        dispatcher,
        resolver,
        batch_size=cfg.ESCALATION_BATCH_SIZE,
        lease_seconds=cfg.ESCALATION_LEASE_SECONDS,
        clock=clock,
    )
    lifecycle = AlertLifecycleManager(
        session_factory, suppressor, resolver, dispatcher, scheduler, ttl_hours=cfg.ALERT_TTL_HOURS, clock=clock
    )
    monitor = ProximityMonitor(
        session_factory,
        lifecycle,
        radii=cfg.DANGER_ZONE_RADII,
        workers=cfg.PROXIMITY_WORKERS,
        position_max_age_minutes=cfg.VESSEL_POSITION_MAX_AGE_MINUTES,
        event_max_age_hours=cfg.EVENT_MAX_AGE_HOURS,
        clock=clock,
    )
    ingestion = IngestionService(session_factory, monitor, clock=clock)
    return AlertEngine(
        lifecycle=lifecycle,
        dispatcher=dispatcher,
        scheduler=scheduler,
        resolver=resolver,
        suppressor=suppressor,
        monitor=monitor,
        ingestion=ingestion,
        session_factory=session_factory,
    )
