from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol


class SendOutcome(str, Enum):
    DELIVERED = "delivered"
    UNREACHABLE = "unreachable"
    ERROR = "error"


@dataclass(slots=True, frozen=True)
class SendResult:
    outcome: SendOutcome
    cause: str = ""

    @property
    def delivered(self) -> bool:
        return self.outcome is SendOutcome.DELIVERED


@dataclass(slots=True, frozen=True)
class OutboundPayload:
    text: str
    attachment_urls: tuple[str, ...] = ()

    def render(self) -> str:
        if not self.attachment_urls:
            return self.text
        return "\n".join([self.text, *self.attachment_urls]).strip()


DELIVERED = SendResult(SendOutcome.DELIVERED)


class MessagingSink(Protocol):
    async def send(self, address: int, payload: OutboundPayload) -> SendResult: ...
