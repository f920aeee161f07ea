# orderbot/api/deps.py
"""
Shared FastAPI dependencies and the object graph behind the webhook.

``build_event_router`` wires the domain services to their adapters once at
startup; routes reach it through ``get_event_router``.
"""

from typing import Optional

from fastapi import Header, HTTPException, Request, status
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from orderbot.core.config import Settings, settings
from orderbot.domain.errors import OrderStoreError
from orderbot.domain.models import Role
from orderbot.domain.ports import CatalogLookup, Notifier, SessionStore
from orderbot.domain.services.conversation_service import ConversationService
from orderbot.domain.services.event_router import EventRouter
from orderbot.domain.services.identity import DirectoryIdentityResolver
from orderbot.domain.services.notification_service import NotificationDispatcher
from orderbot.domain.services.order_workflow import OrderWorkflow
from orderbot.domain.services.session_manager import SessionManager
from orderbot.domain.services.vendor_assignment import build_vendor_policy
from orderbot.infrastructure.cache.session_cache import InMemorySessionStore, RedisSessionStore
from orderbot.infrastructure.db.stores import SqlDeadLetterSink, SqlOperatorDirectory, SqlOrderStore
from orderbot.infrastructure.external.catalog_client import WhatsAppCatalogClient
from orderbot.infrastructure.external.whatsapp_client import WhatsAppNotifier
from orderbot.infrastructure.external.whatsapp_inbound import verify_signature


def build_session_store(cfg: Settings) -> SessionStore:
    if cfg.SESSION_BACKEND == "redis":
        logger.info("Sessions stored in redis")
        return RedisSessionStore(cfg.REDIS_URL, ttl_seconds=cfg.SESSION_TTL_SECONDS)
    if cfg.SESSION_BACKEND != "memory":
        logger.warning("Unknown SESSION_BACKEND {!r}, using memory", cfg.SESSION_BACKEND)
    return InMemorySessionStore()


def build_event_router(
    session_factory: async_sessionmaker[AsyncSession],
    cfg: Settings = settings,
    *,
    notifier: Optional[Notifier] = None,
    catalog: Optional[CatalogLookup] = None,
    session_store: Optional[SessionStore] = None,
) -> EventRouter:
    store = SqlOrderStore(session_factory)
    directory = SqlOperatorDirectory(session_factory)
    dispatcher = NotificationDispatcher(
        notifier or WhatsAppNotifier(),
        max_attempts=cfg.NOTIFY_MAX_ATTEMPTS,
        backoff_seconds=cfg.NOTIFY_BACKOFF_SECONDS,
        dead_letters=SqlDeadLetterSink(session_factory),
    )
    sessions = SessionManager(session_store or build_session_store(cfg))

    workflow = OrderWorkflow(
        store,
        directory,
        dispatcher,
        vendor_policy=build_vendor_policy(cfg.VENDOR_ASSIGNMENT_POLICY, cfg.VENDOR_MAX_DISTANCE_KM),
        admin_ids=sorted(cfg.admin_phones),
        eta_minutes=cfg.DELIVERY_ETA_MINUTES,
        currency_symbol=cfg.CURRENCY_SYMBOL,
        session_releaser=sessions.release,
    )
    conversation = ConversationService(
        catalog or WhatsAppCatalogClient(),
        workflow,
        store,
        currency_symbol=cfg.CURRENCY_SYMBOL,
        support_contact=cfg.SUPPORT_CONTACT,
    )
    identity = DirectoryIdentityResolver(
        admins=cfg.admin_phones,
        vendors=cfg.vendor_phones,
        delivery_partners=cfg.delivery_partner_phones,
        verified_customers=cfg.verified_customer_phones,
    )
    return EventRouter(
        identity,
        sessions,
        conversation,
        workflow,
        dispatcher,
        require_verified=cfg.REQUIRE_VERIFIED_CUSTOMERS,
        support_contact=cfg.SUPPORT_CONTACT,
        seen_cache_size=cfg.SEEN_MESSAGE_CACHE_SIZE,
    )


def get_event_router(request: Request) -> EventRouter:
    router = getattr(request.app.state, "event_router", None)
    if router is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Not ready")
    return router


async def require_whatsapp_signature(
    request: Request,
    x_hub_signature_256: Optional[str] = Header(None, alias="X-Hub-Signature-256"),
) -> bytes:
    """Return the raw body once its HMAC matches; skipped when no app secret is set."""
    body = await request.body()
    if not settings.WHATSAPP_APP_SECRET:
        return body
    if not verify_signature(body, x_hub_signature_256, settings.WHATSAPP_APP_SECRET):
        logger.warning("Rejected webhook with bad signature")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")
    return body


async def load_directory(identity: DirectoryIdentityResolver, directory: SqlOperatorDirectory) -> dict[str, int]:
    """Register vendors, partners and verified customers stored in the database.

    Operators seeded straight into the database still resolve to their role,
    so their command taps never reach the customer dialog.
    """
    counts = {"vendors": 0, "delivery_partners": 0, "verified_customers": 0}
    try:
        operators = await directory.operator_phones()
        verified = await directory.verified_customer_phones()
    except OrderStoreError:
        logger.warning("Directory unavailable at startup; using configured phones only")
        return counts

    identity.add_operators(Role.VENDOR, operators.get(Role.VENDOR, ()))
    identity.add_operators(Role.DELIVERY_PARTNER, operators.get(Role.DELIVERY_PARTNER, ()))
    identity.add_verified_customers(verified)
    counts["vendors"] = len(operators.get(Role.VENDOR, ()))
    counts["delivery_partners"] = len(operators.get(Role.DELIVERY_PARTNER, ()))
    counts["verified_customers"] = len(verified)
    return counts
