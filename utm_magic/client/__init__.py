"""Client engine: identity, attribution, event capture and delivery, content rules."""

from .config import TrackerConfig
from .dispatch import EventBus
from .dom import ContentApplicator, Mutator
from .page_session import PageContext
from .storage import KeyValueStore, MemoryStore, StorageUnavailable
from .tracker import Tracker
from .transport import DeliveryResult, DeliveryStatus

__all__ = [
    "TrackerConfig",
    "Tracker",
    "PageContext",
    "EventBus",
    "ContentApplicator",
    "Mutator",
    "KeyValueStore",
    "MemoryStore",
    "StorageUnavailable",
    "DeliveryResult",
    "DeliveryStatus",
]
