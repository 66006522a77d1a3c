"""
API Services Layer.

Database operations behind the API endpoints. Stateless collaborators
(permission evaluator, privacy filter, audit trail, view recorder, email)
are built once at start-up by ``build_services`` and shared by requests.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from core.config import settings
from core.dedup import QueryDeduplicator
from core.integrations.email import EmailService
from core.middleware.authorization import PermissionEvaluator
from core.privacy import PrivacyFilter
from core.subscriptions import SubscriptionGate
from database.engine import AsyncSessionLocal

from api.services.audit import AuditTrail
from api.services.views import ViewRecorder


@dataclass
class Services:
    """Shared service collaborators."""

    subscription_gate: SubscriptionGate
    evaluator: PermissionEvaluator
    privacy_filter: PrivacyFilter
    audit: AuditTrail
    deduplicator: QueryDeduplicator
    view_recorder: ViewRecorder
    email: EmailService


def build_services(
    session_factory: async_sessionmaker = AsyncSessionLocal,
    email: Optional[EmailService] = None,
) -> Services:
    """
    Build the shared collaborators.

    Args:
        session_factory: Session factory for side-effect writes
        email: Email service; a SendGrid-backed one from settings if omitted

    Returns:
        Services container
    """
    cooldown = timedelta(minutes=settings.view_cooldown_minutes)
    subscription_gate = SubscriptionGate()
    audit = AuditTrail(session_factory)
    deduplicator = QueryDeduplicator(cooldown)
    return Services(
        subscription_gate=subscription_gate,
        evaluator=PermissionEvaluator(subscription_gate),
        privacy_filter=PrivacyFilter(),
        audit=audit,
        deduplicator=deduplicator,
        view_recorder=ViewRecorder(audit, deduplicator, cooldown, session_factory),
        email=email or EmailService(),
    )


__all__ = [
    "Services",
    "build_services",
]
