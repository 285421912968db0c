"""Session context and identity change notifications.

The active session is an explicit object handed to the components that need
it. Identity changes are published to subscribers, each of which gets an
unsubscribe callable back.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..db.store import LocalStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """An authenticated user principal."""

    id: str
    email: Optional[str] = None


IdentityHandler = Callable[[Optional[Identity]], None]


class IdentityProvider:
    """Holds the current identity and notifies handlers when it changes."""

    def __init__(self, identity: Optional[Identity] = None):
        self._identity = identity
        self._handlers: list[IdentityHandler] = []

    @property
    def current(self) -> Optional[Identity]:
        """Current identity, or None for anonymous use."""
        return self._identity

    def subscribe(self, handler: IdentityHandler) -> Callable[[], None]:
        """Register `handler`; it is called with the new identity on every change.

        Returns:
            A callable that removes the handler again
        """
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def set_identity(self, identity: Optional[Identity]) -> None:
        """Switch identity and notify subscribers if it actually changed."""
        if identity == self._identity:
            return
        self._identity = identity
        for handler in list(self._handlers):
            try:
                handler(identity)
            except Exception:
                logger.exception("Identity change handler %r failed", handler)


@dataclass
class SessionContext:
    """State of the active session: local store plus who is signed in."""

    store: LocalStore
    identities: IdentityProvider = field(default_factory=IdentityProvider)

    @property
    def identity(self) -> Optional[Identity]:
        return self.identities.current

    @property
    def user_id(self) -> Optional[str]:
        return self.identity.id if self.identity else None

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None
