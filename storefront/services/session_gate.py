"""Session gate - the identity boundary consulted before every mutation."""
from __future__ import annotations

import logging
from collections.abc import Callable

from storefront.core.exceptions import AuthRequired
from storefront.domain.entities import User

logger = logging.getLogger(__name__)

SessionListener = Callable[[User | None, User | None], None]


class SessionGate:
    """Holds the current signed-in user; identity is issued elsewhere."""

    def __init__(self, user: User | None = None) -> None:
        self._user = user
        self._listeners: list[SessionListener] = []

    def current_user(self) -> User | None:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None

    def require_auth(self, action: str = "this action") -> User:
        """Return the signed-in user or raise AuthRequired. Never touches the network."""
        if self._user is None:
            raise AuthRequired(action)
        return self._user

    def subscribe(self, listener: SessionListener) -> None:
        """Call ``listener(previous, current)`` whenever the identity changes."""
        self._listeners.append(listener)

    def sign_in(self, user: User) -> None:
        previous = self._user
        if previous is not None and previous.id == user.id:
            self._user = user
            return
        self._user = user
        logger.info("Session started for user %s", user.id)
        self._emit(previous, user)

    def sign_out(self) -> None:
        previous = self._user
        if previous is None:
            return
        self._user = None
        logger.info("Session ended for user %s", previous.id)
        self._emit(previous, None)

    def _emit(self, previous: User | None, current: User | None) -> None:
        for listener in list(self._listeners):
            listener(previous, current)
