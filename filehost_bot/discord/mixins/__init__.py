from .message_mixin import MessageMixin
from .workers_mixin import WorkersMixin

__all__ = ["MessageMixin", "WorkersMixin"]
