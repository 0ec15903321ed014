"""
Reextração de um intervalo de tempo do log (normalmente um encounter).

Filtra o texto original pelo timestamp de cada linha e entrega o
subconjunto ao ChunkedScanner. Assume log ordenado por tempo: a leitura
para na primeira linha depois do fim da janela, então linhas fora de
ordem depois desse ponto nunca são vistas.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime

from actlog.combatants import ZonePlayer, is_pet, is_player_id
from actlog.events import EventCode, parse_value, peek_timestamp
from actlog.scanner import MAX_EVENTS, MAX_STATUS_EVENTS, ParsedLogData, ScanOptions, scan
from actlog.structure import Encounter, ZoneSession
from actlog.windows import CancelToken, iter_line_windows

logger = logging.getLogger("actlog.time_range")

MAX_PARTY_SIZE = 8
_FILTER_CHUNK_SIZE = 1_000_000
UPDATE_HP_CODE = 37  # fora do allow-list do decodificador


@dataclass(slots=True)
class ExtractOptions:
    max_events: int = MAX_EVENTS
    max_status_events: int = MAX_STATUS_EVENTS
    on_progress: Callable[[float], None] | None = None
    zone_players: list[ZonePlayer] = field(default_factory=list)
    cancel_token: CancelToken | None = None


def filter_time_range(text: str, start: datetime, end: datetime) -> list[str]:
    """Linhas com ``start <= t <= end``; para na primeira com ``t > end``."""
    selected: list[str] = []
    for lines, _ in iter_line_windows(text, _FILTER_CHUNK_SIZE):
        for line in lines:
            timestamp = peek_timestamp(line)
            if timestamp is None:
                continue
            if timestamp > end:
                return selected
            if timestamp >= start:
                selected.append(line)
    return selected


def extract(
    text: str,
    start: datetime,
    end: datetime,
    options: ExtractOptions | None = None,
) -> ParsedLogData:
    opts = options or ExtractOptions()
    lines = filter_time_range(text, start, end)
    logger.debug("Janela %s - %s: %s linhas", start.isoformat(), end.isoformat(), len(lines))
    parsed = scan(
        "\n".join(lines),
        ScanOptions(
            max_events=opts.max_events,
            max_status_events=opts.max_status_events,
            on_progress=opts.on_progress,
            cancel_token=opts.cancel_token,
        ),
    )

    # O roster da zona é mais completo que o detectado em combate: há
    # jogadores que não geram eventos numa janela curta.
    roster = opts.zone_players or collect_players_from_combat(lines)
    if not roster:
        return parsed
    players = [player.to_combatant() for player in roster]
    return replace(parsed, players=players, combatants=[*players, *parsed.enemies])


def extract_encounter(
    text: str,
    zone: ZoneSession,
    encounter: Encounter,
    options: ExtractOptions | None = None,
) -> ParsedLogData:
    """Atalho: extrai o intervalo do encounter usando o roster da zona."""
    opts = options or ExtractOptions()
    if not opts.zone_players:
        opts = replace(opts, zone_players=list(zone.players))
    return extract(text, encounter.start_time, encounter.end_time, opts)


def _remember(players: dict[str, ZonePlayer], entity_id: str, name: str) -> None:
    entity_id = entity_id.upper()
    if entity_id in players or not name or is_pet(name):
        return
    if is_player_id(entity_id):
        players[entity_id] = ZonePlayer(id=entity_id, name=name)


def collect_players_from_combat(lines: Iterable[str]) -> list[ZonePlayer]:
    """Detecta jogadores pelos eventos de combate da janela.

    Usa UpdateHP (37), ActionEffect (21/22), StartsCasting (20) e
    StatusAdd (26). Ordem de primeira aparição, no máximo 8, job 0
    (o job não vem nesses eventos).
    """
    players: dict[str, ZonePlayer] = {}
    for line in lines:
        if not line.strip():
            continue
        parts = line.split("|")
        if len(parts) < 4:
            continue
        event_code = parse_value(parts[0], int, default=None)
        if event_code == UPDATE_HP_CODE and len(parts) > 14:
            _remember(players, parts[2], parts[3])
            continue
        match event_code:
            case EventCode.ACTION_EFFECT | EventCode.AOE_ACTION_EFFECT if len(parts) > 7:
                _remember(players, parts[2], parts[3])
                _remember(players, parts[6], parts[7])
            case EventCode.STARTS_CASTING if len(parts) > 11:
                _remember(players, parts[2], parts[3])
            case EventCode.STATUS_ADD if len(parts) > 8:
                _remember(players, parts[5], parts[6])
                _remember(players, parts[7], parts[8])
    logger.debug(
        "Jogadores detectados em combate: %s", [player.name for player in players.values()]
    )
    return list(players.values())[:MAX_PARTY_SIZE]
