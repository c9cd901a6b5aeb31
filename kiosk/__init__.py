"""Session-bound voice ordering client for self-service kiosks."""

from .cart import ActionKind, AssistantAction, Cart, CartLine, CartReconciler
from .config import KioskConfig, setup_logging
from .conversation import ConversationDelta, ConversationEngine
from .core import VoiceKiosk, build_kiosk
from .http import KioskClient
from .menus import MenuCatalog, MenuItem
from .orders import Order, OrderResult, OrderSubmitter
from .polling import PairingPoller, PollToken
from .session import SessionStore
from .state import KioskContext, OrderingStage, PairingState, Session

__all__ = [
    "ActionKind",
    "AssistantAction",
    "Cart",
    "CartLine",
    "CartReconciler",
    "KioskConfig",
    "setup_logging",
    "ConversationDelta",
    "ConversationEngine",
    "VoiceKiosk",
    "build_kiosk",
    "KioskClient",
    "MenuCatalog",
    "MenuItem",
    "Order",
    "OrderResult",
    "OrderSubmitter",
    "PairingPoller",
    "PollToken",
    "SessionStore",
    "KioskContext",
    "OrderingStage",
    "PairingState",
    "Session",
]
