from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from .config import KioskConfig
from .errors import TransientNetworkError

logger = logging.getLogger(__name__)

SESSION_PATH = "/kiosk/api/session"
CONVERSATION_PATH = "/kiosk-comm/api/conversation/"
ORDER_PATH = "/kiosk-comm/api/orders/place"
HEALTH_PATH = "/health"


class KioskClient:
    """Thin HTTP layer over the session and conversation services.

    Methods return the raw ``requests.Response``; interpreting status codes is
    left to the component that owns the protocol step. Transport failures
    propagate as ``requests.RequestException``.
    """

    def __init__(self, config: KioskConfig, http: Optional[requests.Session] = None) -> None:
        self.config = config
        self._http = http or requests.Session()

    # ------------------------------------------------------------------
    def _session_url(self, path: str) -> str:
        return self.config.session_base_url + path

    def _conversation_url(self, path: str) -> str:
        return self.config.conversation_base_url + path

    # ------------------------------------------------------------------
    def create_session(self, session_id: str) -> requests.Response:
        return self._http.post(
            self._session_url(SESSION_PATH),
            json={"sessionId": session_id},
            timeout=self.config.http_timeout,
        )

    def session_status(self, session_id: str) -> requests.Response:
        return self._http.get(
            self._session_url(f"{SESSION_PATH}/{session_id}/status"),
            timeout=self.config.http_timeout,
        )

    def upload_utterance(
        self,
        audio: bytes,
        session_id: str,
        *,
        filename: str = "recorded_audio.m4a",
        mime_type: str = "audio/m4a",
        start_conversation: bool = True,
    ) -> requests.Response:
        files = {"file": (filename, audio, mime_type)}
        data = {
            "session_id": session_id,
            "start_conversation": "true" if start_conversation else "false",
        }
        return self._http.post(
            self._conversation_url(CONVERSATION_PATH),
            files=files,
            data=data,
            timeout=self.config.http_timeout,
        )

    def place_order(self, payload: Dict[str, Any]) -> requests.Response:
        return self._http.post(
            self._conversation_url(ORDER_PATH),
            json=payload,
            timeout=self.config.http_timeout,
        )

    # ------------------------------------------------------------------
    def health(self) -> Dict[str, Any]:
        """Probe the conversation service; returns its JSON body."""
        url = self._conversation_url(HEALTH_PATH)
        try:
            r = self._http.get(url, timeout=self.config.http_timeout)
        except requests.RequestException as exc:
            logger.error("[Health] %s unreachable: %s", url, exc)
            raise TransientNetworkError(f"Failed to connect: {exc}") from exc
        if not r.ok:
            logger.error("[Health] %s answered %s", url, r.status_code)
            raise TransientNetworkError(f"HTTP error! status: {r.status_code}", status_code=r.status_code)
        try:
            body = r.json()
        except ValueError:
            body = {"raw": r.text}
        logger.info("[Health] API is healthy: %s", body)
        return body if isinstance(body, dict) else {"raw": body}

    def close(self) -> None:
        self._http.close()


__all__ = ["KioskClient", "SESSION_PATH", "CONVERSATION_PATH", "ORDER_PATH", "HEALTH_PATH"]
