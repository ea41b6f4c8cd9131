"""Button payload grammar.

Payloads look like ``<verb>_<entityId>`` or ``<verb>_<entityId>_<subId>``.
Verbs never contain ``_``; for two-argument verbs the trailing argument is
split off from the right, so entity ids may themselves contain ``_``.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Callable, ClassVar, Dict, Tuple, Type, Union

from .errors import TokenError
from .models import OrderStatus, Role

SEPARATOR = "_"


@dataclass(frozen=True)
class RegisterRole:
    verb: ClassVar[str] = "registerRole"
    role: Role


@dataclass(frozen=True)
class SelectCompany:
    verb: ClassVar[str] = "selectCompany"
    company_id: str


@dataclass(frozen=True)
class SelectRestaurant:
    verb: ClassVar[str] = "selectRestaurant"
    restaurant_id: str


@dataclass(frozen=True)
class AddMenuItemFor:
    verb: ClassVar[str] = "addMenuItemFor"
    restaurant_id: str


@dataclass(frozen=True)
class CreateOrderFor:
    verb: ClassVar[str] = "createOrderFor"
    restaurant_id: str


@dataclass(frozen=True)
class JoinOrder:
    verb: ClassVar[str] = "joinOrder"
    group_order_id: str


@dataclass(frozen=True)
class ViewDetails:
    verb: ClassVar[str] = "viewDetails"
    group_order_id: str


@dataclass(frozen=True)
class TogglePaid:
    verb: ClassVar[str] = "togglePaid"
    group_order_id: str
    worker_id: int


@dataclass(frozen=True)
class SetStatus:
    verb: ClassVar[str] = "setStatus"
    group_order_id: str
    status: OrderStatus


Command = Union[
    RegisterRole,
    SelectCompany,
    SelectRestaurant,
    AddMenuItemFor,
    CreateOrderFor,
    JoinOrder,
    ViewDetails,
    TogglePaid,
    SetStatus,
]

COMMAND_TYPES: Tuple[Type, ...] = (
    RegisterRole,
    SelectCompany,
    SelectRestaurant,
    AddMenuItemFor,
    CreateOrderFor,
    JoinOrder,
    ViewDetails,
    TogglePaid,
    SetStatus,
)

_BY_VERB: Dict[str, Type] = {command.verb: command for command in COMMAND_TYPES}


def _identifier(value: str) -> str:
    if not value:
        raise ValueError("empty identifier")
    return value


def _worker_id(value: str) -> int:
    if not value.lstrip("-").isdigit():
        raise ValueError(f"not an integer: {value!r}")
    return int(value)


_ARGUMENT_PARSERS: Dict[type, Callable[[str], object]] = {
    str: _identifier,
    int: _worker_id,
    Role: Role,
    OrderStatus: OrderStatus,
}

_ARGUMENT_TYPES: Dict[str, type] = {
    "role": Role,
    "company_id": str,
    "restaurant_id": str,
    "group_order_id": str,
    "worker_id": int,
    "status": OrderStatus,
}


def encode(command: Command) -> str:
    values = []
    for item in fields(command):
        value = getattr(command, item.name)
        values.append(value.value if isinstance(value, (Role, OrderStatus)) else str(value))
    return SEPARATOR.join([command.verb, *values])


def parse(payload: str) -> Command:
    """Turn a button payload into a typed command or raise ``TokenError``."""
    if not payload or SEPARATOR not in payload:
        raise TokenError(f"Unknown action: {payload!r}")

    verb, rest = payload.split(SEPARATOR, 1)
    command_type = _BY_VERB.get(verb)
    if command_type is None:
        raise TokenError(f"Unknown action: {verb!r}")

    names = [item.name for item in fields(command_type)]
    if len(names) == 1:
        raw_values = [rest]
    else:
        raw_values = rest.rsplit(SEPARATOR, len(names) - 1)
        if len(raw_values) != len(names):
            raise TokenError(f"Malformed {verb} action: {payload!r}")

    arguments = {}
    for name, raw in zip(names, raw_values):
        parser = _ARGUMENT_PARSERS[_ARGUMENT_TYPES[name]]
        try:
            arguments[name] = parser(raw)
        except ValueError as exc:
            raise TokenError(f"Malformed {verb} action: {payload!r}") from exc
    return command_type(**arguments)
