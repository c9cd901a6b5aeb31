from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .audio import AudioClip, Recorder
from .cart import CartReconciler
from .config import KioskConfig
from .conversation import ConversationDelta, ConversationEngine
from .http import KioskClient
from .menus import MenuCatalog
from .orders import OrderResult, OrderSubmitter
from .session import SessionStore
from .state import KioskContext, Session

logger = logging.getLogger(__name__)


class VoiceKiosk:
    """Wires session pairing, conversation and ordering per terminal.

    Ordering flow for a terminal:
      start_session -> (poll until paired) -> submit_utterance ... ->
      place_order -> reset
    """

    def __init__(
        self,
        config: KioskConfig,
        client: KioskClient,
        catalog: MenuCatalog,
        store: SessionStore,
        engine: ConversationEngine,
        submitter: OrderSubmitter,
    ) -> None:
        self.config = config
        self.client = client
        self.catalog = catalog
        self.store = store
        self.engine = engine
        self.submitter = submitter

    # ------------------------------------------------------------------
    def context(self, terminal_id: str = "default") -> KioskContext:
        return self.store.get_context(terminal_id)

    def start_session(self, terminal_id: str = "default") -> Session:
        return self.store.create_session(terminal_id)

    def reset(self, terminal_id: str = "default") -> Session:
        logger.info("[Kiosk] reset requested for terminal %s", terminal_id)
        return self.store.reset_session(terminal_id)

    def submit_utterance(self, terminal_id: str, audio: Union[AudioClip, bytes]) -> ConversationDelta:
        return self.engine.submit_utterance(audio, self.store.require_context(terminal_id))

    def record_and_submit(self, terminal_id: str, recorder: Recorder) -> ConversationDelta:
        return self.engine.record_and_submit(recorder, self.store.require_context(terminal_id))

    def place_order(self, terminal_id: str = "default") -> OrderResult:
        return self.submitter.place_order(self.store.require_context(terminal_id))

    def snapshot(self, terminal_id: str = "default") -> Dict[str, Any]:
        return self.store.require_context(terminal_id).as_state()

    def health(self) -> Dict[str, Any]:
        return self.client.health()

    def close(self) -> None:
        self.store.close()
        self.client.close()


def build_kiosk(
    config: Optional[KioskConfig] = None,
    client: Optional[KioskClient] = None,
    catalog: Optional[MenuCatalog] = None,
    background_polling: bool = True,
) -> VoiceKiosk:
    config = config or KioskConfig.from_env()
    client = client or KioskClient(config)
    if catalog is None:
        catalog = MenuCatalog()
        if config.menu_path:
            catalog.bootstrap_from_file(Path(config.menu_path))
        if not len(catalog):
            catalog = MenuCatalog.default()
    logger.info("[Kiosk] catalog ready: %d items in %s", len(catalog), ", ".join(catalog.categories()))
    return VoiceKiosk(
        config=config,
        client=client,
        catalog=catalog,
        store=SessionStore(client, background_polling=background_polling),
        engine=ConversationEngine(client, CartReconciler(catalog)),
        submitter=OrderSubmitter(client),
    )


__all__ = ["VoiceKiosk", "build_kiosk"]
