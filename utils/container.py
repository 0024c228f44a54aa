"""
Composition root: builds each service once and hands it to the views.
"""
import threading
from datetime import timedelta

from django.conf import settings

from bookings.orchestrator import BookingOrchestrator
from bookings.services import BookingService
from core.constants import UserRole
from core.services import AccountService
from core.session import SessionGate, SessionStore
from trains.services import InventoryService

from .mongo import MongoGateway


class ServiceContainer:
    """All services wired around one gateway."""

    def __init__(self, gateway, debit_retries=3, staged_ttl=timedelta(minutes=15),
                 cookie_secure=False):
        self.gateway = gateway
        self._accounts = {role: AccountService(gateway, role) for role in UserRole}
        self.inventory = InventoryService(gateway, debit_retries=debit_retries)
        self.bookings = BookingService(gateway)
        self.sessions = SessionStore(gateway)
        self.gate = SessionGate(self.accounts, self.sessions, cookie_secure=cookie_secure)
        self.orchestrator = BookingOrchestrator(
            self.inventory, self.bookings, self.sessions, staged_ttl=staged_ttl
        )

    def accounts(self, role):
        return self._accounts[UserRole(role)]

    @classmethod
    def from_settings(cls, gateway=None):
        if gateway is None:
            gateway = MongoGateway.connect(
                settings.MONGODB_URI, settings.MONGODB_NAME,
                timeout_ms=settings.MONGODB_TIMEOUT_MS,
            )
            gateway.ensure_indexes()
        return cls(
            gateway,
            debit_retries=settings.SEAT_DEBIT_RETRIES,
            staged_ttl=timedelta(minutes=settings.STAGED_BOOKING_TTL_MINUTES),
            cookie_secure=settings.SESSION_COOKIE_SECURE,
        )


_container = None
_lock = threading.Lock()


def get_container():
    """The process-wide container, connecting to MongoDB on first use."""
    global _container
    if _container is None:
        with _lock:
            if _container is None:
                _container = ServiceContainer.from_settings()
    return _container


def set_container(container):
    """Install a container (tests use one built on an in-memory client)."""
    global _container
    with _lock:
        _container = container
