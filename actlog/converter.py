"""
Conversão de ParsedLogData para a timeline normalizada consumida pelo
renderizador externo.

Função pura e determinística. Entradas degeneradas (sem jogadores,
duração não positiva) geram um resultado vazio mas bem formado; quem chama
decide o que fazer com ele.

Heurísticas documentadas: centro da arena fixo por configuração (o centro
real depende da instância e não está no log) e cor de debuff por palavra
chave no nome do status.
"""

import logging
import math
from dataclasses import dataclass
from typing import Literal, TypeAlias

from actlog.combatants import ParsedCombatant
from actlog.events import Position, StatusAdd, WaymarkMarker, epoch_ms
from actlog.jobs import get_job_abbreviation
from actlog.scanner import ParsedLogData

logger = logging.getLogger("actlog.converter")

PLAYER_ROLES: tuple[str, ...] = ("P1", "P2", "P3", "P4", "P5", "P6", "P7", "P8")
MAX_ENEMIES = 5
DEFAULT_ARENA_CENTER: tuple[float, float] = (100.0, 100.0)
ENEMY_PLACEHOLDER_PREFIX = "E00"

MARKER_TYPES: dict[int, str] = {
    0: "A",
    1: "B",
    2: "C",
    3: "D",
    4: "1",
    5: "2",
    6: "3",
    7: "4",
}

# (palavras-chave, cor) na ordem de prioridade
DEBUFF_COLOR_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("damage", "vulnerability"), "#ff4444"),
    (("heal", "regen"), "#44ff44"),
    (("magic", "spell"), "#4444ff"),
    (("tank", "aggro", "enmity"), "#ffff44"),
    (("stack", "集合"), "#44ffff"),
    (("spread", "散開"), "#ff8844"),
)
DEFAULT_DEBUFF_COLOR = "#aa44ff"


@dataclass(slots=True)
class ConversionOptions:
    mechanic_name: str
    fps: int
    description: str = "Imported from ACT log"
    start_time_offset: int = 0  # ms desde o início do log
    end_time_offset: int | None = None  # ms desde o início do log; None = fim do log
    field_size: int = 40
    background_color: str = "#1a1a3e"
    arena_center: tuple[float, float] = DEFAULT_ARENA_CENTER


@dataclass(frozen=True, slots=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True, slots=True)
class FieldSettings:
    type: str
    size: int
    background_color: str
    grid_enabled: bool = True


@dataclass(frozen=True, slots=True)
class FieldMarker:
    type: str
    position: Point


@dataclass(frozen=True, slots=True)
class Player:
    id: str
    role: str
    job: str
    name: str
    position: Point


@dataclass(frozen=True, slots=True)
class Enemy:
    id: str
    name: str
    position: Point
    size: int = 3
    color: str = "#ff4444"


@dataclass(frozen=True, slots=True)
class Debuff:
    id: str
    name: str
    duration: float
    color: str


@dataclass(frozen=True, slots=True)
class DebuffAddEvent:
    id: str
    frame: int
    target_id: str
    debuff: Debuff
    type: Literal["debuff_add"] = "debuff_add"


TimelineEvent: TypeAlias = DebuffAddEvent


@dataclass(frozen=True, slots=True)
class NormalizedTimeline:
    id: str
    name: str
    description: str
    duration_frames: int
    fps: int
    field: FieldSettings
    markers: tuple[FieldMarker, ...]
    initial_players: tuple[Player, ...]
    enemies: tuple[Enemy, ...]
    timeline: tuple[TimelineEvent, ...]


def ms_to_frame(ms: float, fps: int) -> int:
    """Arredonda metade para cima, como ``Math.round``."""
    return math.floor(ms / 1000 * fps + 0.5)


def get_initials(name: str) -> str:
    """Rótulo de 2 letras: iniciais de até dois nomes, senão as 2 primeiras letras."""
    parts = name.split()
    if len(parts) >= 2:
        return "".join(part[0].upper() for part in parts)[:2]
    return name[:2].upper()


def normalize_position(
    pos: Position, center: tuple[float, float] = DEFAULT_ARENA_CENTER
) -> Point:
    """Coordenada do jogo -> coordenada do campo (centro da arena em 0,0).

    Coordenada não finita vira 0 (centro).
    """
    center_x, center_y = center
    return Point(x=_round_tenth(pos.x - center_x), y=_round_tenth(pos.y - center_y))


def _round_tenth(value: float) -> float:
    if not math.isfinite(value):
        return 0.0
    return math.floor(value * 10 + 0.5) / 10


def get_debuff_color(name: str) -> str:
    lower_name = name.lower()
    for keywords, color in DEBUFF_COLOR_RULES:
        if any(keyword in lower_name for keyword in keywords):
            return color
    return DEFAULT_DEBUFF_COLOR


def _unique_players(players: list[ParsedCombatant]) -> list[ParsedCombatant]:
    unique: dict[str, ParsedCombatant] = {}
    for player in players:
        unique.setdefault(player.id.upper(), player)
    return list(unique.values())[: len(PLAYER_ROLES)]


def assign_roles(
    players: list[ParsedCombatant], center: tuple[float, float] = DEFAULT_ARENA_CENTER
) -> list[Player]:
    return [
        Player(
            id=role.lower(),
            role=role,
            job=get_job_abbreviation(player.job_id),
            name=get_initials(player.name),
            position=normalize_position(player.position, center),
        )
        for role, player in zip(PLAYER_ROLES, _unique_players(players))
    ]


def convert_enemies(
    enemies: list[ParsedCombatant], center: tuple[float, float] = DEFAULT_ARENA_CENTER
) -> list[Enemy]:
    named = [
        enemy
        for enemy in enemies
        if enemy.name and not enemy.name.startswith(ENEMY_PLACEHOLDER_PREFIX)
    ]
    return [
        Enemy(
            id=f"enemy_{index}",
            name=enemy.name,
            position=normalize_position(enemy.position, center),
        )
        for index, enemy in enumerate(named[:MAX_ENEMIES])
    ]


def convert_timeline(
    status_adds: list[StatusAdd],
    player_id_map: dict[str, str],
    start_ms: int,
    fps: int,
) -> list[TimelineEvent]:
    events: list[TimelineEvent] = []
    seen: set[tuple[str, str, int]] = set()
    for status in status_adds:
        if (player_id := player_id_map.get(status.target_id.upper())) is None:
            continue
        event_ms = epoch_ms(status.timestamp)
        key = (status.status_id, player_id, event_ms // 1000)
        if key in seen:
            continue
        seen.add(key)
        frame = ms_to_frame(event_ms - start_ms, fps)
        if frame < 0:
            continue
        events.append(
            DebuffAddEvent(
                id=f"debuff_{len(events)}",
                frame=frame,
                target_id=player_id,
                debuff=Debuff(
                    id=f"status_{status.status_id}",
                    name=status.status_name,
                    duration=status.duration,
                    color=get_debuff_color(status.status_name),
                ),
            )
        )
    return events


def convert_waymarks(
    waymarks: list[WaymarkMarker], center: tuple[float, float] = DEFAULT_ARENA_CENTER
) -> list[FieldMarker]:
    # Último estado de cada slot; remoção apaga o marcador
    states: dict[int, Point | None] = {}
    for waymark in waymarks:
        if waymark.operation == "add":
            states[waymark.marker_type] = normalize_position(waymark.position, center)
        else:
            states[waymark.marker_type] = None
    return [
        FieldMarker(type=MARKER_TYPES[slot], position=position)
        for slot, position in states.items()
        if position is not None and slot in MARKER_TYPES
    ]


def convert(parsed: ParsedLogData, options: ConversionOptions) -> NormalizedTimeline:
    center = options.arena_center
    log_start_ms = epoch_ms(parsed.start_time) if parsed.start_time else 0
    log_end_ms = epoch_ms(parsed.end_time) if parsed.end_time else log_start_ms
    start_ms = log_start_ms + options.start_time_offset
    end_ms = (
        log_start_ms + options.end_time_offset
        if options.end_time_offset is not None
        else log_end_ms
    )
    duration_frames = max(0, math.ceil((end_ms - start_ms) / 1000 * options.fps))

    unique_players = _unique_players(parsed.players)
    players = assign_roles(unique_players, center)
    player_id_map = {
        log_player.id.upper(): player.id for log_player, player in zip(unique_players, players)
    }
    if not players or duration_frames == 0:
        logger.warning(
            "Conversao degenerada para '%s': %s jogadores, %s frames",
            options.mechanic_name,
            len(players),
            duration_frames,
        )

    return NormalizedTimeline(
        id=f"imported_{start_ms}",
        name=options.mechanic_name,
        description=options.description,
        duration_frames=duration_frames,
        fps=options.fps,
        field=FieldSettings(
            type="circle",
            size=options.field_size,
            background_color=options.background_color,
        ),
        markers=tuple(convert_waymarks(parsed.waymarks, center)),
        initial_players=tuple(players),
        enemies=tuple(convert_enemies(parsed.enemies, center)),
        timeline=tuple(
            convert_timeline(parsed.status_adds, player_id_map, start_ms, options.fps)
        ),
    )


def unique_debuffs(parsed: ParsedLogData) -> list[tuple[str, str, int]]:
    """(status_id, nome, ocorrências) de cada StatusAdd, para pré-visualizar a importação."""
    counts: dict[str, list] = {}
    for status in parsed.status_adds:
        if status.status_id in counts:
            counts[status.status_id][1] += 1
        else:
            counts[status.status_id] = [status.status_name, 1]
    return [(status_id, name, count) for status_id, (name, count) in counts.items()]
