from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import requests

from .http import KioskClient
from .state import KioskContext

logger = logging.getLogger(__name__)


class PollStatus(str, Enum):
    PENDING = "pending"
    CONNECTED = "connected"
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"


@dataclass(frozen=True)
class PollResult:
    status: PollStatus
    user: Optional[str] = None
    detail: str = ""

    @property
    def terminal(self) -> bool:
        if self.status is PollStatus.CONNECTED:
            return bool(self.user)
        return self.status is PollStatus.NOT_FOUND


def interpret_status_response(response: requests.Response) -> PollResult:
    """Map one ``GET .../status`` response onto a poll outcome."""
    if response.status_code == 404:
        return PollResult(PollStatus.NOT_FOUND, detail="Session not found")
    if response.status_code != 200:
        return PollResult(PollStatus.TRANSIENT, detail=f"Polling failed with status: {response.status_code}")
    try:
        data = response.json()
    except ValueError:
        return PollResult(PollStatus.TRANSIENT, detail="status body is not JSON")
    if not isinstance(data, dict):
        return PollResult(PollStatus.TRANSIENT, detail="status body is not an object")
    status = str(data.get("status") or "")
    user = data.get("user")
    if status == "connected" and isinstance(user, str) and user:
        return PollResult(PollStatus.CONNECTED, user=user)
    return PollResult(PollStatus.PENDING, detail=status)


class PollToken:
    """Cancellation handle for one polling loop bound to one session id."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        self._event = threading.Event()
        self.thread: Optional[threading.Thread] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout``; True once cancelled."""
        return self._event.wait(timeout)

    def join(self, timeout: Optional[float] = None) -> None:
        if self.thread is not None and self.thread is not threading.current_thread():
            self.thread.join(timeout)

    def __repr__(self) -> str:
        return f"PollToken(session_id={self.session_id!r}, cancelled={self.cancelled})"


class PairingPoller:
    """Polls the session service until the session is paired or unknown.

    At most one live token exists per context. A response is applied only if
    its token is still live and the context still holds the token's session.
    """

    def __init__(
        self,
        client: KioskClient,
        interval: Optional[float] = None,
        on_paired: Optional[Callable[[KioskContext, str], None]] = None,
        on_not_found: Optional[Callable[[KioskContext, str], None]] = None,
    ) -> None:
        self.client = client
        self.interval = interval if interval is not None else client.config.poll_interval
        self.on_paired = on_paired
        self.on_not_found = on_not_found

    # ------------------------------------------------------------------
    def start_polling(self, context: KioskContext, background: bool = True) -> PollToken:
        with context.lock:
            if context.session is None:
                raise ValueError("context has no session to poll")
            current = context.poll_token
            if current is not None and not current.cancelled and current.session_id == context.session.id:
                return current
            if current is not None:
                self.stop_polling(current)
            token = PollToken(context.session.id)
            context.poll_token = token
        logger.info("[Poller] starting to poll for session %s", token.session_id)
        if background:
            token.thread = threading.Thread(
                target=self._run,
                args=(context, token),
                name=f"pairing-poll-{token.session_id[:8]}",
                daemon=True,
            )
            token.thread.start()
        return token

    def stop_polling(self, token: Optional[PollToken]) -> None:
        if token is None or token.cancelled:
            return
        token.cancel()
        logger.info("[Poller] stopped polling for session %s", token.session_id)

    # ------------------------------------------------------------------
    def _run(self, context: KioskContext, token: PollToken) -> None:
        while not token.wait(self.interval):
            if not self.poll_once(context, token):
                break

    def poll_once(self, context: KioskContext, token: PollToken) -> bool:
        """Issue one status request; returns whether polling should go on."""
        if token.cancelled:
            return False
        try:
            response = self.client.session_status(token.session_id)
        except requests.RequestException as exc:
            logger.warning("[Poller] polling error for %s: %s", token.session_id, exc)
            return not token.cancelled
        result = interpret_status_response(response)
        return self._apply(context, token, result)

    def _apply(self, context: KioskContext, token: PollToken, result: PollResult) -> bool:
        with context.lock:
            session = context.session
            if token.cancelled or session is None or session.id != token.session_id:
                logger.debug("[Poller] discarding stale %s for %s", result.status.value, token.session_id)
                return False

            if result.status is PollStatus.PENDING:
                logger.debug("[Poller] session status: %s", result.detail or "<empty>")
                return True
            if result.status is PollStatus.TRANSIENT:
                logger.warning("[Poller] %s", result.detail)
                return True
            user = result.user if result.status is PollStatus.CONNECTED else None
            if result.status is PollStatus.CONNECTED and not user:
                logger.debug("[Poller] connected without a user, still waiting")
                return True

            token.cancel()
            if context.poll_token is token:
                context.poll_token = None

            if user:
                session.mark_paired(user)
                logger.info("[Poller] session %s connected: %s", session.id, session.welcome_message)
                callback, arg = self.on_paired, user
            else:
                session.mark_not_found()
                context.last_error = result.detail
                logger.error("[Poller] session %s not found", session.id)
                callback, arg = self.on_not_found, session.id

        if callback is not None:
            callback(context, arg)
        return False


__all__ = ["PairingPoller", "PollToken", "PollResult", "PollStatus", "interpret_status_response"]
