from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from shop.models import SessionUser
from storage.kv import KeyValueStore, SessionStore
from utils import settings
from utils.logger import get_logger

_logger = get_logger(__name__)


@dataclass
class SessionContext:
    """
    Owner of the logged-in identity, handed to everything that needs it.

    Fields:
      - user: the SessionUser, None while nobody is logged in
      - store: session-scoped store holding the identity; it is cleared when
        the app exits, so a restart always asks for a login again
    """

    user: Optional[SessionUser] = None
    store: KeyValueStore = field(default_factory=SessionStore)

    @property
    def uid(self) -> Optional[int]:
        return self.user.id if self.user else None

    @property
    def is_logged_in(self) -> bool:
        return self.user is not None

    @property
    def is_admin(self) -> bool:
        return bool(self.user and self.user.is_admin)

    async def load(self) -> Optional[SessionUser]:
        """Restore the identity from the store, if one is there and readable."""
        data = await self.store.get_json(settings.SESSION_USER_KEY)
        if not data:
            self.user = None
            return None
        try:
            self.user = SessionUser.from_store(data)
        except (KeyError, TypeError, ValueError) as e:
            _logger.error(f"Discarding unreadable session identity: {e}")
            self.user = None
        return self.user

    async def login(self, user: SessionUser) -> None:
        self.user = user
        await self.store.set_json(settings.SESSION_USER_KEY, user.to_store())
        _logger.info(f"Session started for {user.username} ({user.role})")

    async def logout(self) -> None:
        if self.user:
            _logger.info(f"Session ended for {self.user.username}")
        self.user = None
        await self.store.remove(settings.SESSION_USER_KEY)
