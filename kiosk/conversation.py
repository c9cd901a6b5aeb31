from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from functools import partial
from typing import Any, Callable, List, Optional, Union

import requests
from pydantic import BaseModel, ConfigDict, ValidationError

from .audio import AudioClip, Recorder, capture
from .cart import AssistantAction, CartReconciler
from .errors import KioskError, MalformedResponseError, SessionNotFoundError, SessionNotPairedError, UploadError
from .http import KioskClient
from .state import ConversationTurn, KioskContext, PairingState, Role

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Wire models
# ---------------------------------------------------------------------------
class ActionPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    add_item_id: Optional[str] = None
    finalize_order: Optional[int] = None


class ResponseData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    prompt_response: Optional[str] = None
    action: Optional[ActionPayload] = None


class ConversationEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    promptMessage: Optional[str] = None
    data: Optional[ResponseData] = None


@dataclass(frozen=True)
class AssistantReply:
    user_text: Optional[str]
    assistant_text: Optional[str]
    action: AssistantAction


def decode_reply(body: Any) -> AssistantReply:
    """Turn a decoded JSON body into a reply; raises MalformedResponseError."""
    if not isinstance(body, dict):
        raise MalformedResponseError("conversation response is not a JSON object")
    try:
        envelope = ConversationEnvelope.model_validate(body)
    except ValidationError as exc:
        raise MalformedResponseError(f"unexpected conversation response: {exc.errors()}") from exc

    data = envelope.data or ResponseData()
    action = data.action or ActionPayload()
    return AssistantReply(
        user_text=envelope.promptMessage or None,
        assistant_text=data.prompt_response or None,
        action=AssistantAction(
            add_item_id=(action.add_item_id or "").strip() or None,
            finalize_order=action.finalize_order == 1,
        ),
    )


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------
@dataclass
class ConversationDelta:
    """What one utterance changed. ``stale`` deltas were discarded unapplied."""

    turns: List[ConversationTurn] = field(default_factory=list)
    action: AssistantAction = field(default_factory=AssistantAction.none)
    total: Decimal = Decimal("0.00")
    ready_to_finalize: bool = False
    stale: bool = False

    def to_api(self) -> dict:
        return {
            "turns": [turn.to_api() for turn in self.turns],
            "action": {
                "kind": self.action.kind.value,
                "addItemId": self.action.add_item_id,
                "finalizeOrder": self.action.finalize_order,
            },
            "total": f"{self.total:.2f}",
            "readyToFinalize": self.ready_to_finalize,
            "stale": self.stale,
        }


class ConversationEngine:
    def __init__(self, client: KioskClient, reconciler: CartReconciler, start_conversation: Optional[bool] = None) -> None:
        self.client = client
        self.reconciler = reconciler
        if start_conversation is None:
            start_conversation = client.config.start_conversation
        self.start_conversation = start_conversation

    # ------------------------------------------------------------------
    def record_and_submit(self, recorder: Recorder, context: KioskContext) -> ConversationDelta:
        return self.submit_utterance(capture(recorder), context)

    def submit_utterance(self, audio: Union[AudioClip, bytes], context: KioskContext) -> ConversationDelta:
        clip = audio if isinstance(audio, AudioClip) else AudioClip(data=audio)
        with context.lock:
            session = context.session
            if session is not None and session.pairing_state is PairingState.NOT_FOUND:
                raise SessionNotFoundError(session.id)
            if session is None or session.pairing_state is not PairingState.PAIRED:
                raise SessionNotPairedError("Session is not paired yet")
            session_id = session.id
            ticket, generation = context.issue_ticket()
            context.in_flight += 1

        error: Optional[KioskError] = None
        apply_fn: Optional[Callable[[], ConversationDelta]] = None
        try:
            try:
                reply = self._upload(clip, session_id)
            except KioskError as exc:
                error = exc
            except Exception:
                context.apply_in_order(ticket, generation, None)
                raise
            else:
                apply_fn = partial(self._apply, reply, context)
            applied, delta = context.apply_in_order(ticket, generation, apply_fn)
        finally:
            with context.lock:
                if context.generation == generation and context.in_flight > 0:
                    context.in_flight -= 1

        if not applied:
            logger.info("[Conversation] discarding response for replaced session %s", session_id)
            return ConversationDelta(stale=True)
        if error is not None:
            with context.lock:
                if context.generation == generation:
                    context.last_error = str(error)
            raise error
        if not isinstance(delta, ConversationDelta):
            raise MalformedResponseError("conversation reply produced no update")
        return delta

    # ------------------------------------------------------------------
    def _upload(self, clip: AudioClip, session_id: str) -> AssistantReply:
        try:
            r = self.client.upload_utterance(
                clip.data,
                session_id,
                filename=clip.filename,
                mime_type=clip.mime_type,
                start_conversation=self.start_conversation,
            )
        except requests.RequestException as exc:
            logger.error("[Conversation] uploadAudio error: %s", exc)
            raise UploadError(f"upload failed: {exc}") from exc
        if not r.ok:
            logger.error("[Conversation] upload answered %s", r.status_code)
            raise UploadError(f"upload failed with status {r.status_code}", status_code=r.status_code)
        try:
            body = r.json()
        except ValueError as exc:
            raise MalformedResponseError("conversation response is not JSON") from exc
        logger.debug("[Conversation] response: %s", body)
        return decode_reply(body)

    def _apply(self, reply: AssistantReply, context: KioskContext) -> ConversationDelta:
        turns: List[ConversationTurn] = []
        if reply.user_text:
            turns.append(context.append_turn(Role.USER, reply.user_text))
        if reply.assistant_text:
            turns.append(context.append_turn(Role.ASSISTANT, reply.assistant_text))
        cart = self.reconciler.apply_action(reply.action, context.cart)
        logger.info(
            "[Conversation] session=%s turns=+%d action=%s total=%s",
            context.session_id, len(turns), reply.action.kind.value, cart.total,
        )
        return ConversationDelta(
            turns=turns,
            action=reply.action,
            total=cart.total,
            ready_to_finalize=cart.ready_to_finalize,
        )


__all__ = [
    "ActionPayload",
    "ResponseData",
    "ConversationEnvelope",
    "AssistantReply",
    "ConversationDelta",
    "ConversationEngine",
    "decode_reply",
]
