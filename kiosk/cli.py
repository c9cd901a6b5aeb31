from __future__ import annotations

import argparse
import json
import logging
import time
from pathlib import Path
from typing import List, Optional

from .audio import FileRecorder
from .config import KioskConfig, setup_logging
from .core import VoiceKiosk, build_kiosk
from .errors import KioskError
from .state import PairingState

logger = logging.getLogger(__name__)


def _wait_for_pairing(kiosk: VoiceKiosk, timeout: float) -> PairingState:
    context = kiosk.context()
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        session = context.session
        if session is not None and session.pairing_state is not PairingState.UNPAIRED:
            return session.pairing_state
        time.sleep(0.2)
    return PairingState.UNPAIRED


def cmd_health(kiosk: VoiceKiosk, args: argparse.Namespace) -> int:
    try:
        body = kiosk.health()
    except KioskError as exc:
        print(str(exc))
        return 1
    print(f"API is healthy: {json.dumps(body)}")
    return 0


def cmd_order(kiosk: VoiceKiosk, args: argparse.Namespace) -> int:
    session = kiosk.start_session()
    print(f"Scan this QR Code: {session.id}")

    state = _wait_for_pairing(kiosk, args.timeout)
    if state is PairingState.NOT_FOUND:
        print("Session not found")
        return 1
    if state is PairingState.UNPAIRED:
        print(f"Nobody paired within {args.timeout:.0f}s")
        return 1
    print(kiosk.context().session.welcome_message)

    for path in args.audio:
        try:
            delta = kiosk.record_and_submit("default", FileRecorder(Path(path)))
        except KioskError as exc:
            print(f"! {path}: {exc}")
            continue
        for turn in delta.turns:
            print(f"{turn.role.value:>9}: {turn.text}")

    context = kiosk.context()
    for line in context.cart.lines:
        print(f"  {line.quantity} x {line.item.name:<20} ${line.subtotal:.2f}")
    print(f"  Total: ${context.cart.total:.2f}")

    if not context.cart.ready_to_finalize:
        print("Order not finalized by the assistant; nothing placed.")
        return 2
    try:
        result = kiosk.place_order()
    except KioskError as exc:
        print(f"Failed to place order: {exc}")
        return 1
    print("Order Confirmed!")
    for label, price in result.summary_lines():
        print(f"  {label:<24} {price}")
    print(f"  Total: {result.formatted_total()}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="kiosk", description="Voice ordering kiosk client")
    parser.add_argument("--session-url", help="Session service base URL")
    parser.add_argument("--conversation-url", help="Conversation service base URL")
    parser.add_argument("--log-level", help="Logging level (default: KIOSK_LOG_LEVEL or INFO)")
    sub = parser.add_subparsers(dest="command", required=True)

    health = sub.add_parser("health", help="Check the conversation service")
    health.set_defaults(func=cmd_health)

    order = sub.add_parser("order", help="Pair, talk through recorded clips, and place the order")
    order.add_argument("audio", nargs="+", help="Recorded utterances, submitted in order")
    order.add_argument("--timeout", type=float, default=120.0, help="Seconds to wait for pairing")
    order.set_defaults(func=cmd_order)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = KioskConfig.from_env()
    if args.session_url:
        config.session_base_url = args.session_url.rstrip("/")
    if args.conversation_url:
        config.conversation_base_url = args.conversation_url.rstrip("/")
    if args.log_level:
        config.log_level = args.log_level.upper()
    setup_logging(config)

    kiosk = build_kiosk(config)
    try:
        return args.func(kiosk, args)
    except KioskError as exc:
        logger.error("[CLI] %s", exc)
        print(str(exc))
        return 1
    finally:
        kiosk.close()


if __name__ == "__main__":
    raise SystemExit(main())
