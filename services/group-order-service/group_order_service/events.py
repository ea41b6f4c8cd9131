from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class InboundEvent:
    """A text message or a button selection, independent of the transport."""

    sender_id: int
    chat_id: int
    text: Optional[str] = None
    callback_data: Optional[str] = None
    callback_id: Optional[str] = None
    display_name: Optional[str] = None

    @property
    def is_selection(self) -> bool:
        return self.callback_data is not None
