from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from typing import Optional

DEFAULT_SESSION_BASE_URL = "http://192.168.0.3:8080"
DEFAULT_CONVERSATION_BASE_URL = "http://192.168.0.3:8082"

_TRUTHY = ("true", "1", "yes", "on")


def _flag(name: str, default: str) -> bool:
    return (os.getenv(name) or default).strip().lower() in _TRUTHY


@dataclass
class KioskConfig:
    """Runtime settings for a kiosk terminal.

    Two independent services are talked to:
      - the session service (QR pairing)
      - the conversation service (voice turns and order placement)
    """

    session_base_url: str = DEFAULT_SESSION_BASE_URL
    conversation_base_url: str = DEFAULT_CONVERSATION_BASE_URL
    poll_interval: float = 2.0
    http_timeout: float = 10.0
    restaurant_id: int = 100
    tenant_id: int = 607
    start_conversation: bool = True
    submit_orders: bool = True
    menu_path: Optional[str] = None
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        self.session_base_url = self.session_base_url.rstrip("/")
        self.conversation_base_url = self.conversation_base_url.rstrip("/")
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")

    @classmethod
    def from_env(cls) -> "KioskConfig":
        return cls(
            session_base_url=(os.getenv("KIOSK_SESSION_BASE_URL") or DEFAULT_SESSION_BASE_URL).strip(),
            conversation_base_url=(os.getenv("KIOSK_CONVERSATION_BASE_URL") or DEFAULT_CONVERSATION_BASE_URL).strip(),
            poll_interval=float(os.getenv("KIOSK_POLL_INTERVAL") or 2.0),
            http_timeout=float(os.getenv("KIOSK_HTTP_TIMEOUT") or 10.0),
            restaurant_id=int(os.getenv("KIOSK_RESTAURANT_ID") or 100),
            tenant_id=int(os.getenv("KIOSK_TENANT_ID") or 607),
            start_conversation=_flag("KIOSK_START_CONVERSATION", "true"),
            submit_orders=_flag("KIOSK_SUBMIT_ORDERS", "true"),
            menu_path=(os.getenv("KIOSK_MENU_PATH") or "").strip() or None,
            log_level=(os.getenv("KIOSK_LOG_LEVEL") or "INFO").strip().upper(),
        )


def setup_logging(config: KioskConfig) -> None:
    """Route kiosk logs to stdout with a single format."""
    level = getattr(logging, config.log_level, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    # requests/urllib3 are chatty at DEBUG
    logging.getLogger("urllib3").setLevel(max(level, logging.WARNING))


__all__ = ["KioskConfig", "setup_logging"]
