"""FastAPI dependencies for dependency injection."""

from __future__ import annotations

from collections.abc import Callable, Generator  # noqa: TC003
from dataclasses import dataclass
from datetime import timedelta
from typing import Annotated

from fastapi import Depends, Header

from learnledger.cascade import CourseDeletionOrchestrator
from learnledger.config import Settings
from learnledger.enrollment import EnrollmentLedger
from learnledger.notifications import NotificationDispatcher
from learnledger.payments import PaymentProcessor
from learnledger.quizzes import CourseworkService
from learnledger.store import (
    ActorContext,
    AuthenticationError,
    CatalogStore,
    Database,
    ForbiddenError,
    Role,
)


@dataclass
class Services:
    """Everything a request handler may need, wired to one database."""

    settings: Settings
    db: Database
    catalog: CatalogStore
    ledger: EnrollmentLedger
    payments: PaymentProcessor
    coursework: CourseworkService
    cascade: CourseDeletionOrchestrator
    notifier: NotificationDispatcher

    @classmethod
    def from_settings(cls, settings: Settings) -> Services:
        """Build the service graph described by ``settings`` and create tables."""
        db = Database(settings.db_path)
        db.create_tables()
        notifier = NotificationDispatcher(
            settings.notification_url, timeout=settings.notification_timeout
        )
        grace_period = timedelta(days=settings.grace_period_days)
        return cls(
            settings=settings,
            db=db,
            catalog=CatalogStore(db),
            ledger=EnrollmentLedger(
                db,
                grace_period=grace_period,
                unenroll_window=timedelta(days=settings.unenroll_window_days),
            ),
            payments=PaymentProcessor(
                db,
                notifier=notifier,
                currency=settings.currency,
                payment_expiry=timedelta(hours=settings.payment_expiry_hours),
                organization_name=settings.organization_name,
                organization_contact=settings.organization_contact,
            ),
            coursework=CourseworkService(db, notifier=notifier, grace_period=grace_period),
            cascade=CourseDeletionOrchestrator(db),
            notifier=notifier,
        )

    def close(self) -> None:
        self.notifier.close()
        self.db.close()


# Global Services instance (initialized on app startup)
_services: Services | None = None


def init_services(settings: Settings | None = None) -> Services:
    """Initialize the global Services instance."""
    global _services  # noqa: PLW0603
    if _services is not None:
        _services.close()
    _services = Services.from_settings(settings or Settings())
    return _services


def close_services() -> None:
    """Close the global Services instance."""
    global _services  # noqa: PLW0603
    if _services is not None:
        _services.close()
        _services = None


def get_services() -> Generator[Services, None, None]:
    """Dependency that provides the Services instance."""
    if _services is None:
        raise RuntimeError("Services not initialized. Call init_services() first.")
    yield _services


ServicesDep = Annotated[Services, Depends(get_services)]


def get_catalog(services: ServicesDep) -> CatalogStore:
    return services.catalog


def get_ledger(services: ServicesDep) -> EnrollmentLedger:
    return services.ledger


def get_payments(services: ServicesDep) -> PaymentProcessor:
    return services.payments


def get_coursework(services: ServicesDep) -> CourseworkService:
    return services.coursework


def get_cascade(services: ServicesDep) -> CourseDeletionOrchestrator:
    return services.cascade


# Type aliases for dependency injection
CatalogDep = Annotated[CatalogStore, Depends(get_catalog)]
LedgerDep = Annotated[EnrollmentLedger, Depends(get_ledger)]
PaymentsDep = Annotated[PaymentProcessor, Depends(get_payments)]
CourseworkDep = Annotated[CourseworkService, Depends(get_coursework)]
CascadeDep = Annotated[CourseDeletionOrchestrator, Depends(get_cascade)]


def get_actor(
    x_actor_id: Annotated[str | None, Header()] = None,
    x_actor_role: Annotated[str | None, Header()] = None,
) -> ActorContext:
    """Resolve the caller from the headers set by the authentication gateway."""
    if not x_actor_id or not x_actor_role:
        raise AuthenticationError("Missing caller identity")
    try:
        role = Role(x_actor_role.lower())
    except ValueError as e:
        raise AuthenticationError(f"Unknown role '{x_actor_role}'") from e
    return ActorContext(id=x_actor_id, role=role)


ActorDep = Annotated[ActorContext, Depends(get_actor)]


def require_roles(*roles: Role) -> Callable[[ActorContext], ActorContext]:
    """Build a dependency that admits only the given roles.

    Admins are admitted wherever coordinators are.
    """
    allowed = set(roles)
    if Role.COORDINATOR in allowed:
        allowed.add(Role.ADMIN)

    def check(actor: ActorDep) -> ActorContext:
        if actor.role not in allowed:
            raise ForbiddenError(f"Role '{actor.role}' may not perform this action")
        return actor

    return check


LearnerDep = Annotated[ActorContext, Depends(require_roles(Role.LEARNER))]
StaffDep = Annotated[ActorContext, Depends(require_roles(Role.COORDINATOR))]
EducatorOrStaffDep = Annotated[
    ActorContext, Depends(require_roles(Role.EDUCATOR, Role.COORDINATOR))
]
LearnerOrStaffDep = Annotated[
    ActorContext, Depends(require_roles(Role.LEARNER, Role.COORDINATOR))
]
