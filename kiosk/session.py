from __future__ import annotations

import logging
from threading import RLock
from typing import Dict, List, Optional

import requests

from .errors import SessionCreationError, UnknownTerminalError
from .http import KioskClient
from .polling import PairingPoller
from .state import KioskContext, Session

logger = logging.getLogger(__name__)


class SessionStore:
    """Per-terminal session registry.

    Creating a session on a terminal that already has one is a reset: the
    old poll is cancelled before the new session id becomes visible, and
    conversation and cart state are cleared together with it.
    """

    def __init__(
        self,
        client: KioskClient,
        poller: Optional[PairingPoller] = None,
        background_polling: bool = True,
    ) -> None:
        self.client = client
        self.poller = poller or PairingPoller(client)
        self.background_polling = background_polling
        self._contexts: Dict[str, KioskContext] = {}
        self._lock = RLock()

    # ------------------------------------------------------------------
    def get_context(self, terminal_id: str = "default") -> KioskContext:
        key = terminal_id or "default"
        with self._lock:
            if key not in self._contexts:
                self._contexts[key] = KioskContext(terminal_id=key)
            return self._contexts[key]

    def find_context(self, terminal_id: str = "default") -> Optional[KioskContext]:
        """Like get_context, but never creates one."""
        with self._lock:
            return self._contexts.get(terminal_id or "default")

    def require_context(self, terminal_id: str = "default") -> KioskContext:
        context = self.find_context(terminal_id)
        if context is None:
            raise UnknownTerminalError(terminal_id)
        return context

    def get_session(self, terminal_id: str = "default") -> Optional[Session]:
        context = self.find_context(terminal_id)
        if context is None:
            return None
        with context.lock:
            return context.session

    def contexts(self) -> List[KioskContext]:
        with self._lock:
            return list(self._contexts.values())

    # ------------------------------------------------------------------
    def create_session(self, terminal_id: str = "default") -> Session:
        context = self.get_context(terminal_id)
        session = Session()
        with context.lock:
            self.poller.stop_polling(context.poll_token)
            context.poll_token = None
            context.replace_session(session)
        logger.info("[Session] generated new session %s for terminal %s", session.id, context.terminal_id)

        self._register(context, session)

        with context.lock:
            if context.session is not session:
                logger.info("[Session] %s was replaced before polling started", session.id)
                return session
            self.poller.start_polling(context, background=self.background_polling)
        return session

    def reset_session(self, terminal_id: str = "default") -> Session:
        return self.create_session(terminal_id)

    def _register(self, context: KioskContext, session: Session) -> None:
        try:
            r = self.client.create_session(session.id)
        except requests.RequestException as exc:
            logger.error("[Session] error creating session %s: %s", session.id, exc)
            self._fail(context, session, "Unable to create session on backend")
            raise SessionCreationError("Unable to create session on backend") from exc
        if not r.ok:
            message = f"Failed to create session: {r.text}"
            logger.error("[Session] %s", message)
            self._fail(context, session, message)
            raise SessionCreationError(message)
        logger.info("[Session] session %s created successfully", session.id)

    @staticmethod
    def _fail(context: KioskContext, session: Session, message: str) -> None:
        with context.lock:
            if context.session is session:
                context.last_error = message

    # ------------------------------------------------------------------
    def stop(self, terminal_id: str = "default") -> None:
        context = self.find_context(terminal_id)
        if context is None:
            return
        with context.lock:
            self.poller.stop_polling(context.poll_token)
            context.poll_token = None

    def discard(self, terminal_id: str) -> None:
        self.stop(terminal_id)
        with self._lock:
            self._contexts.pop(terminal_id, None)

    def close(self) -> None:
        for context in self.contexts():
            self.stop(context.terminal_id)


__all__ = ["SessionStore"]
