"""Protocol for chat (answer synthesis) providers."""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class Message:
    role: str
    content: str


@runtime_checkable
class ChatProvider(Protocol):
    """Turns a list of messages into a reply."""

    def chat(self, messages: list[Message]) -> str:
        ...
