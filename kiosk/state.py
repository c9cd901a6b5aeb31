from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from .cart import Cart

T = TypeVar("T")


class PairingState(str, Enum):
    UNPAIRED = "unpaired"
    PAIRED = "paired"
    NOT_FOUND = "not_found"


class OrderingStage(str, Enum):
    UNPAIRED = "unpaired"
    PAIRED = "paired"
    CONVERSING = "conversing"
    READY_TO_FINALIZE = "ready_to_finalize"
    SUBMITTED = "submitted"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


def new_session_id() -> str:
    return str(uuid.uuid4())


@dataclass
class Session:
    id: str = field(default_factory=new_session_id)
    pairing_state: PairingState = PairingState.UNPAIRED
    paired_user: Optional[str] = None

    @property
    def welcome_message(self) -> str:
        if self.pairing_state is PairingState.PAIRED and self.paired_user:
            return f"Welcome {self.paired_user}"
        return ""

    def mark_paired(self, user: str) -> bool:
        """Record the paired user; only the first call has any effect."""
        if self.pairing_state is not PairingState.UNPAIRED:
            return False
        self.pairing_state = PairingState.PAIRED
        self.paired_user = user
        return True

    def mark_not_found(self) -> bool:
        if self.pairing_state is not PairingState.UNPAIRED:
            return False
        self.pairing_state = PairingState.NOT_FOUND
        return True

    def as_state(self) -> Dict[str, object]:
        return {
            "sessionId": self.id,
            "pairingState": self.pairing_state.value,
            "user": self.paired_user,
            "welcomeMessage": self.welcome_message,
        }


@dataclass(frozen=True)
class ConversationTurn:
    role: Role
    text: str
    sequence: int

    def to_api(self) -> Dict[str, object]:
        return {"role": self.role.value, "text": self.text, "sequence": self.sequence}


class KioskContext:
    """Everything one kiosk terminal knows about its current ordering session.

    All mutation goes through ``lock``. ``generation`` changes on every
    session swap so late results from the previous session can be told apart.
    Utterance results are applied in issue order via ``issue_ticket`` /
    ``apply_in_order``.
    """

    def __init__(self, terminal_id: str = "default") -> None:
        self.terminal_id = terminal_id
        self.lock = threading.RLock()
        self._turn_cond = threading.Condition(self.lock)
        self.session: Optional[Session] = None
        self.generation = 0
        self.turns: List[ConversationTurn] = []
        self.cart = Cart()
        self.in_flight = 0
        self.submitted = False
        self.submitting = False
        self.poll_token: Optional[Any] = None
        self.last_error: Optional[str] = None
        self._issued = 0
        self._applied = 0

    # ------------------------------------------------------------------
    @property
    def session_id(self) -> Optional[str]:
        with self.lock:
            return self.session.id if self.session else None

    @property
    def processing(self) -> bool:
        with self.lock:
            return self.in_flight > 0

    @property
    def stage(self) -> OrderingStage:
        with self.lock:
            if self.session is None or self.session.pairing_state is not PairingState.PAIRED:
                return OrderingStage.UNPAIRED
            if self.submitted:
                return OrderingStage.SUBMITTED
            if self.cart.ready_to_finalize:
                return OrderingStage.READY_TO_FINALIZE
            if self.turns or self.cart.lines:
                return OrderingStage.CONVERSING
            return OrderingStage.PAIRED

    # ------------------------------------------------------------------
    def replace_session(self, session: Session) -> None:
        """Swap in a new session, discarding conversation and cart state."""
        with self.lock:
            self.generation += 1
            self.session = session
            self.turns = []
            self.cart = Cart()
            self.in_flight = 0
            self.submitted = False
            self.submitting = False
            self.last_error = None
            self._issued = 0
            self._applied = 0
            self._turn_cond.notify_all()

    def append_turn(self, role: Role, text: str) -> ConversationTurn:
        with self.lock:
            turn = ConversationTurn(role=role, text=text, sequence=len(self.turns))
            self.turns.append(turn)
            return turn

    # ------------------------------------------------------------------
    def issue_ticket(self) -> Tuple[int, int]:
        with self.lock:
            ticket = self._issued
            self._issued += 1
            return ticket, self.generation

    def apply_in_order(self, ticket: int, generation: int, fn: Optional[Callable[[], T]]) -> Tuple[bool, Optional[T]]:
        """Run ``fn`` once every earlier ticket has been applied.

        Returns ``(False, None)`` when the session was replaced since the
        ticket was issued; ``fn`` is not run in that case. ``fn=None`` only
        releases the slot (used for failed uploads).
        """
        with self._turn_cond:
            while generation == self.generation and self._applied != ticket:
                self._turn_cond.wait()
            if generation != self.generation:
                return False, None
            try:
                return True, (fn() if fn is not None else None)
            finally:
                self._applied += 1
                self._turn_cond.notify_all()

    # ------------------------------------------------------------------
    def as_state(self) -> Dict[str, object]:
        with self.lock:
            return {
                "terminalId": self.terminal_id,
                "stage": self.stage.value,
                "session": self.session.as_state() if self.session else None,
                "conversation": [turn.to_api() for turn in self.turns],
                "cart": self.cart.as_state(),
                "processing": self.processing,
                "lastError": self.last_error,
            }


__all__ = [
    "PairingState",
    "OrderingStage",
    "Role",
    "Session",
    "ConversationTurn",
    "KioskContext",
    "new_session_id",
]
