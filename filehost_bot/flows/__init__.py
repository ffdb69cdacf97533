from .common import EventKind, InboundEvent, InboundFile
from .dispatcher import EventDispatcher

__all__ = ["EventDispatcher", "EventKind", "InboundEvent", "InboundFile"]
