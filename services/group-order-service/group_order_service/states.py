"""Conversation steps.

Every step a participant can be in while the bot waits for their next input.
The dispatcher keeps one handler per step.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Mapping


class Workflow(str, Enum):
    REGISTRATION = "registration"
    CATALOG = "catalog"
    GROUP_ORDER = "group_order"


class Expecting(str, Enum):
    # Registration
    ROLE_CHOICE = "ROLE_CHOICE"
    AFFILIATION = "AFFILIATION"
    NAME = "NAME"
    PHONE = "PHONE"
    COMPANY = "COMPANY"

    # Catalog
    RESTAURANT_NAME = "RESTAURANT_NAME"
    MENU_ITEM = "MENU_ITEM"

    # Group order
    ORDER_LINES = "ORDER_LINES"

    @property
    def workflow(self) -> Workflow:
        return WORKFLOW_OF[self]

    @property
    def awaits_selection(self) -> bool:
        """True when the step is answered with a button rather than text."""
        return self in (Expecting.ROLE_CHOICE, Expecting.AFFILIATION)


WORKFLOW_OF: Dict[Expecting, Workflow] = {
    Expecting.ROLE_CHOICE: Workflow.REGISTRATION,
    Expecting.AFFILIATION: Workflow.REGISTRATION,
    Expecting.NAME: Workflow.REGISTRATION,
    Expecting.PHONE: Workflow.REGISTRATION,
    Expecting.COMPANY: Workflow.REGISTRATION,
    Expecting.RESTAURANT_NAME: Workflow.CATALOG,
    Expecting.MENU_ITEM: Workflow.CATALOG,
    Expecting.ORDER_LINES: Workflow.GROUP_ORDER,
}


# Registration may only move forward along these edges; staying in place is
# how invalid input is re-prompted.
REGISTRATION_TRANSITIONS: Dict[Expecting, List[Expecting]] = {
    Expecting.ROLE_CHOICE: [Expecting.AFFILIATION, Expecting.NAME],
    Expecting.AFFILIATION: [Expecting.NAME],
    Expecting.NAME: [Expecting.PHONE],
    Expecting.PHONE: [Expecting.COMPANY],
    Expecting.COMPANY: [],
}


def is_valid_transition(from_step: Expecting, to_step: Expecting) -> bool:
    if from_step == to_step:
        return True
    return to_step in REGISTRATION_TRANSITIONS.get(from_step, [])


@dataclass(frozen=True)
class SessionState:
    """What the bot expects next from a chat, plus what it has collected so far."""

    expecting: Expecting
    data: Mapping[str, Any] = field(default_factory=dict)

    def advance(self, expecting: Expecting, **data: Any) -> "SessionState":
        return replace(self, expecting=expecting, data={**self.data, **data})

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)
