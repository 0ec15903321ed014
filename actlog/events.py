"""
Decodificador de linhas do log de rede do ACT (formato separado por pipe).

Cada linha tem o formato ``<codigo>|<timestamp ISO-8601>|<campo>|<campo>...``.
Apenas um conjunto fixo de codigos e decodificado; o resto e ignorado.
Campos numericos invalidos viram 0 em vez de descartar a linha inteira.
"""

import logging
import math
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import IntEnum
from functools import partial
from typing import Any

logger = logging.getLogger("actlog.events")

# Regex pré-compiladas para hot paths
_RE_EXTRA_FRACTION = re.compile(r"(\.\d{6})\d+")

WAYMARK_SCALE = 1000
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


class EventCode(IntEnum):
    CHANGE_ZONE = 1
    ADD_COMBATANT = 3
    STARTS_CASTING = 20
    ACTION_EFFECT = 21
    AOE_ACTION_EFFECT = 22
    STATUS_ADD = 26
    STATUS_REMOVE = 27
    WAYMARK_MARKER = 29
    ACTOR_CONTROL = 33
    TETHER = 40


SUPPORTED_EVENT_CODES: frozenset[int] = frozenset(EventCode)
STATUS_EVENT_CODES: frozenset[int] = frozenset(
    {EventCode.STATUS_ADD, EventCode.STATUS_REMOVE}
)
COMBAT_ACTION_CODES: frozenset[int] = frozenset(
    {EventCode.STARTS_CASTING, EventCode.ACTION_EFFECT, EventCode.AOE_ACTION_EFFECT}
)


@dataclass(frozen=True, slots=True)
class Position:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    heading: float = 0.0


@dataclass(frozen=True, slots=True, kw_only=True)
class LogEvent:
    timestamp: datetime
    event_code: int
    raw_line: str = field(default="", repr=False, compare=False)


@dataclass(frozen=True, slots=True, kw_only=True)
class ChangeZone(LogEvent):
    zone_id: int
    zone_name: str


@dataclass(frozen=True, slots=True, kw_only=True)
class AddCombatant(LogEvent):
    id: str
    name: str
    job_id: int
    level: int
    owner_id: str
    world_id: int
    world_name: str
    npc_name_id: str
    npc_base_id: str
    current_hp: int
    max_hp: int
    current_mp: int
    max_mp: int
    position: Position


@dataclass(frozen=True, slots=True, kw_only=True)
class StartsCasting(LogEvent):
    source_id: str
    source_name: str
    action_id: str
    action_name: str
    target_id: str
    target_name: str
    cast_time: float
    position: Position


@dataclass(frozen=True, slots=True, kw_only=True)
class ActionEffect(LogEvent):
    source_id: str
    source_name: str
    action_id: str
    action_name: str
    target_id: str
    target_name: str
    effect_flags: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True, kw_only=True)
class StatusAdd(LogEvent):
    status_id: str
    status_name: str
    duration: float
    source_id: str
    source_name: str
    target_id: str
    target_name: str
    stacks: int
    target_max_hp: int


@dataclass(frozen=True, slots=True, kw_only=True)
class StatusRemove(LogEvent):
    status_id: str
    status_name: str
    source_id: str
    source_name: str
    target_id: str
    target_name: str
    stacks: int


@dataclass(frozen=True, slots=True, kw_only=True)
class WaymarkMarker(LogEvent):
    operation: str  # "add" | "remove"
    marker_type: int  # 0=A, 1=B, 2=C, 3=D, 4=1, 5=2, 6=3, 7=4
    position: Position


@dataclass(frozen=True, slots=True, kw_only=True)
class ActorControl(LogEvent):
    instance_id: str
    command: str
    data0: str
    data1: str
    data2: str
    data3: str


@dataclass(frozen=True, slots=True, kw_only=True)
class Tether(LogEvent):
    source_id: str
    source_name: str
    target_id: str
    target_name: str
    tether_id: str


def parse_value(
    val: Any,
    typ: type = str,
    default: Any = None,
    pre: Callable[[str], Any] | None = None,
) -> Any:
    if val is None:
        return default
    text = str(val).strip()
    if pre is not None:
        return pre(text)
    try:
        if typ is int:
            return int(text, 10)
        if typ is float:
            # float() aceita "NaN" e "inf"; no log isso é lixo
            number = float(text)
            return number if math.isfinite(number) else default
        if typ is str:
            return text
        return typ(text)
    except ValueError:
        return default


_parse_int = partial(parse_value, typ=int, default=0)
_parse_float = partial(parse_value, typ=float, default=0.0)


def _parse_hex(val: str) -> int:
    try:
        return int(val.strip(), 16)
    except ValueError:
        return 0


def _parse_scaled(val: str) -> float:
    """Waymarks chegam multiplicados por 1000 no log."""
    return _parse_int(val) / WAYMARK_SCALE


def _text(val: str) -> str:
    return val


def _operation(val: str) -> str:
    return "add" if val == "Add" else "remove"


def parse_timestamp(text: str) -> datetime | None:
    """Converte '2024-01-15T10:30:45.1234567+09:00' em datetime com fuso.

    Frações além de microssegundos são truncadas; timestamps sem offset
    são rejeitados.
    """
    if not text:
        return None
    try:
        ts = datetime.fromisoformat(_RE_EXTRA_FRACTION.sub(r"\1", text.strip(), count=1))
    except ValueError:
        return None
    return ts if ts.tzinfo is not None else None


def epoch_ms(ts: datetime) -> int:
    """Milissegundos inteiros desde a época; frações abaixo de 1 ms são descartadas."""
    return (ts - _EPOCH) // _ONE_MS


def peek_event_code(line: str) -> int | None:
    """Extrai só o código inicial, sem dividir a linha inteira."""
    head, sep, _ = line.partition("|")
    if not sep:
        return None
    try:
        return int(head, 10)
    except ValueError:
        return None


def peek_timestamp(line: str) -> datetime | None:
    """Extrai só o segundo campo (timestamp) da linha."""
    first = line.find("|")
    if first == -1:
        return None
    second = line.find("|", first + 1)
    if second == -1:
        return None
    return parse_timestamp(line[first + 1 : second])


Spec = list[tuple[str, int, Callable[[str], Any]]]

_POSITION_FIELDS = ("x", "y", "z", "heading")


def _map_cols(cols: list[str], spec: Spec) -> dict[str, Any]:
    # Campos ausentes no fim da linha viram o valor padrão do conversor.
    return {
        name: pre(cols[idx]) if idx < len(cols) else pre("")
        for name, idx, pre in spec
    }


def _with_position(mapped: dict[str, Any]) -> dict[str, Any]:
    coords = {axis: mapped.pop(axis) for axis in _POSITION_FIELDS if axis in mapped}
    if coords:
        mapped["position"] = Position(**coords)
    return mapped


ADD_COMBATANT_SPEC: Spec = [
    ("id", 2, _text),
    ("name", 3, _text),
    ("job_id", 4, _parse_int),
    ("level", 5, _parse_int),
    ("owner_id", 6, _text),
    ("world_id", 7, _parse_int),
    ("world_name", 8, _text),
    ("npc_name_id", 9, _text),
    ("npc_base_id", 10, _text),
    ("current_hp", 11, _parse_int),
    ("max_hp", 12, _parse_int),
    ("current_mp", 13, _parse_int),
    ("max_mp", 14, _parse_int),
    ("x", 17, _parse_float),
    ("y", 18, _parse_float),
    ("z", 19, _parse_float),
    ("heading", 20, _parse_float),
]
STARTS_CASTING_SPEC: Spec = [
    ("source_id", 2, _text),
    ("source_name", 3, _text),
    ("action_id", 4, _text),
    ("action_name", 5, _text),
    ("target_id", 6, _text),
    ("target_name", 7, _text),
    ("cast_time", 8, _parse_float),
    ("x", 9, _parse_float),
    ("y", 10, _parse_float),
    ("z", 11, _parse_float),
    ("heading", 12, _parse_float),
]
ACTION_EFFECT_SPEC: Spec = [
    ("source_id", 2, _text),
    ("source_name", 3, _text),
    ("action_id", 4, _text),
    ("action_name", 5, _text),
    ("target_id", 6, _text),
    ("target_name", 7, _text),
]
STATUS_ADD_SPEC: Spec = [
    ("status_id", 2, _text),
    ("status_name", 3, _text),
    ("duration", 4, _parse_float),
    ("source_id", 5, _text),
    ("source_name", 6, _text),
    ("target_id", 7, _text),
    ("target_name", 8, _text),
    ("stacks", 9, _parse_int),
    ("target_max_hp", 10, _parse_int),
]
# O campo 4 do StatusRemove não é usado.
STATUS_REMOVE_SPEC: Spec = [
    ("status_id", 2, _text),
    ("status_name", 3, _text),
    ("source_id", 5, _text),
    ("source_name", 6, _text),
    ("target_id", 7, _text),
    ("target_name", 8, _text),
    ("stacks", 9, _parse_int),
]
WAYMARK_SPEC: Spec = [
    ("operation", 2, _operation),
    ("marker_type", 3, _parse_int),
    ("x", 8, _parse_scaled),
    ("y", 10, _parse_scaled),
    ("z", 12, _parse_scaled),
]
ACTOR_CONTROL_SPEC: Spec = [
    ("instance_id", 2, _text),
    ("command", 3, _text),
    ("data0", 4, _text),
    ("data1", 5, _text),
    ("data2", 6, _text),
    ("data3", 7, _text),
]
TETHER_SPEC: Spec = [
    ("source_id", 2, _text),
    ("source_name", 3, _text),
    ("target_id", 4, _text),
    ("target_name", 5, _text),
    ("tether_id", 8, _text),
]
CHANGE_ZONE_SPEC: Spec = [
    ("zone_id", 2, _parse_hex),
    ("zone_name", 3, _text),
]

# código -> (classe, mínimo de colunas incluindo código e timestamp, spec)
_DECODERS: dict[int, tuple[type[LogEvent], int, Spec]] = {
    EventCode.CHANGE_ZONE: (ChangeZone, 4, CHANGE_ZONE_SPEC),
    EventCode.ADD_COMBATANT: (AddCombatant, 18, ADD_COMBATANT_SPEC),
    EventCode.STARTS_CASTING: (StartsCasting, 10, STARTS_CASTING_SPEC),
    EventCode.ACTION_EFFECT: (ActionEffect, 8, ACTION_EFFECT_SPEC),
    EventCode.AOE_ACTION_EFFECT: (ActionEffect, 8, ACTION_EFFECT_SPEC),
    EventCode.STATUS_ADD: (StatusAdd, 11, STATUS_ADD_SPEC),
    EventCode.STATUS_REMOVE: (StatusRemove, 10, STATUS_REMOVE_SPEC),
    EventCode.WAYMARK_MARKER: (WaymarkMarker, 13, WAYMARK_SPEC),
    EventCode.ACTOR_CONTROL: (ActorControl, 4, ACTOR_CONTROL_SPEC),
    EventCode.TETHER: (Tether, 9, TETHER_SPEC),
}


def min_fields(event_code: int) -> int | None:
    entry = _DECODERS.get(event_code)
    return entry[1] if entry else None


def decode_line(line: str) -> LogEvent | None:
    """Decodifica uma linha em evento tipado, ou None se a linha não serve."""
    parts = line.split("|")
    if len(parts) < 2:
        return None
    event_code = peek_event_code(line)
    if event_code is None or (entry := _DECODERS.get(event_code)) is None:
        return None
    timestamp = parse_timestamp(parts[1])
    if timestamp is None:
        return None
    cls, required, spec = entry
    if len(parts) < required:
        logger.debug(
            "Linha curta para codigo %s: %s colunas (esperado >= %s)",
            event_code,
            len(parts),
            required,
        )
        return None
    payload = _with_position(_map_cols(parts, spec))
    if cls is ActionEffect:
        payload["effect_flags"] = tuple(parts[8:])
    return cls(timestamp=timestamp, event_code=event_code, raw_line=line, **payload)
