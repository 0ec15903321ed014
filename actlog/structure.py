"""
Estrutura de um log grande: zonas e encounters, numa única passada.

Não materializa eventos decodificados; trabalha direto nos campos brutos
da linha para aguentar logs de centenas de MB. As decisões de segmentação
são irreversíveis:

- ChangeZone fecha o encounter aberto e a zona atual e abre outra zona;
- ação de inimigo (20/21/22) abre encounter se não houver um aberto ou se
  o intervalo desde o último combate passar de ``COMBAT_GAP_THRESHOLD_MS``;
- ActorControl com o comando de wipe encerra o encounter como ``wipe``;
- encounters com menos de ``MIN_ENCOUNTER_DURATION_MS`` são descartados.

Sem nenhum ChangeZone o resultado tem zero zonas (e zero encounters).
"""

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Literal, TypeAlias

from actlog.combatants import ZonePlayer, classify, is_pet
from actlog.events import (
    COMBAT_ACTION_CODES,
    EventCode,
    epoch_ms,
    parse_value,
    peek_event_code,
    peek_timestamp,
)
from actlog.windows import CancelToken, ProgressReporter, iter_line_windows

logger = logging.getLogger("actlog.structure")

WIPE_COMMAND = "40000010"
MIN_ENCOUNTER_DURATION_MS = 10_000
COMBAT_GAP_THRESHOLD_MS = 30_000
CHUNK_SIZE = 100_000

MIN_ENCOUNTER_DURATION = timedelta(milliseconds=MIN_ENCOUNTER_DURATION_MS)
COMBAT_GAP_THRESHOLD = timedelta(milliseconds=COMBAT_GAP_THRESHOLD_MS)

# Zonas de raid/trial conhecidas (savage e extreme)
RAID_ZONE_IDS: frozenset[int] = frozenset(
    {
        0x52B,  # AAC Heavyweight M2 (Savage)
        0x52A,  # AAC Heavyweight M1 (Savage)
        0x52C,  # AAC Heavyweight M3 (Savage)
        0x52D,  # AAC Heavyweight M4 (Savage)
        0x522,  # Mistwake (trial)
        0x50C,  # Meso Terminal
    }
)

_STRUCTURE_CODES = frozenset(
    {EventCode.CHANGE_ZONE, EventCode.ADD_COMBATANT, EventCode.ACTOR_CONTROL}
) | COMBAT_ACTION_CODES

EncounterResult: TypeAlias = Literal["clear", "wipe", "unknown"]


@dataclass(frozen=True, slots=True)
class Encounter:
    id: str
    start_time: datetime
    end_time: datetime
    duration_ms: int
    result: EncounterResult
    boss_name: str | None
    player_count: int


@dataclass(slots=True)
class ZoneSession:
    zone_id: int
    zone_name: str
    start_time: datetime
    end_time: datetime
    encounters: list[Encounter] = field(default_factory=list)
    players: list[ZonePlayer] = field(default_factory=list)

    @property
    def is_raid(self) -> bool:
        return is_raid_zone(self.zone_id)


@dataclass(slots=True)
class LogStructure:
    filename: str
    total_lines: int
    zones: list[ZoneSession]
    parse_progress: float = 1.0

    @property
    def encounters(self) -> list[tuple[ZoneSession, Encounter]]:
        return [(zone, enc) for zone in self.zones for enc in zone.encounters]


@dataclass(slots=True)
class StructureOptions:
    on_progress: Callable[[float], None] | None = None
    chunk_size: int = CHUNK_SIZE
    cancel_token: CancelToken | None = None


@dataclass(slots=True)
class _OpenEncounter:
    start_time: datetime
    boss_name: str | None
    end_time: datetime | None = None
    result: EncounterResult = "unknown"


def _encounter_id(start_time: datetime) -> str:
    return f"encounter_{epoch_ms(start_time)}"


class StructureScanner:
    def __init__(
        self, text: str, filename: str = "", options: StructureOptions | None = None
    ) -> None:
        self.text = text
        self.filename = filename
        self.options = options or StructureOptions()
        self.zones: list[ZoneSession] = []
        self.total_lines = 0
        self._zone: ZoneSession | None = None
        self._encounter: _OpenEncounter | None = None
        self._last_combat: datetime | None = None
        self._encounter_players: set[str] = set()
        self._zone_players: dict[str, ZonePlayer] = {}
        self._started = False
        self._finished = False
        self._progress = ProgressReporter(self.options.on_progress)

    @property
    def finished(self) -> bool:
        return self._finished

    def chunks(self) -> Iterator[float]:
        """Processa uma janela por iteração e devolve a fração consumida."""
        if self._started:
            raise RuntimeError("StructureScanner.chunks() can only be consumed once")
        self._started = True
        total = len(self.text)
        cancel = self.options.cancel_token
        for lines, consumed in iter_line_windows(self.text, self.options.chunk_size):
            if cancel is not None:
                cancel.raise_if_cancelled()
            for line in lines:
                self.total_lines += 1
                self._process_line(line)
            fraction = consumed / total
            self._progress.update(fraction)
            if consumed < total:
                yield fraction
        self._finish_input()
        self._finished = True
        self._progress.finish()

    def run(self) -> LogStructure:
        for _ in self.chunks():
            pass
        return self.result()

    def result(self) -> LogStructure:
        if not self._finished:
            raise RuntimeError("Scan not finished; consume chunks() first")
        return LogStructure(
            filename=self.filename,
            total_lines=self.total_lines,
            zones=self.zones,
        )

    def _process_line(self, line: str) -> None:
        event_code = peek_event_code(line)
        if event_code not in _STRUCTURE_CODES:
            return
        timestamp = peek_timestamp(line)
        if timestamp is None:
            return
        match event_code:
            case EventCode.CHANGE_ZONE:
                self._on_change_zone(line, timestamp)
            case EventCode.ADD_COMBATANT:
                self._on_add_combatant(line)
            case EventCode.ACTOR_CONTROL:
                self._on_actor_control(line, timestamp)
            case _:
                self._on_combat_action(line, timestamp)

    def _on_change_zone(self, line: str, timestamp: datetime) -> None:
        # Formato: 01|timestamp|zoneId(hex)|zoneName|checksum
        parts = line.split("|")
        if len(parts) < 4:
            return
        try:
            zone_id = int(parts[2], 16)
        except ValueError:
            logger.debug("ChangeZone com id invalido: %s", parts[2])
            return
        if self._zone is not None:
            if self._encounter is not None and self._encounter.end_time is None:
                self._encounter.end_time = self._last_combat or timestamp
            self._finalize_encounter()
            self._close_zone(timestamp)
        self._zone = ZoneSession(
            zone_id=zone_id,
            zone_name=parts[3],
            start_time=timestamp,
            end_time=timestamp,
        )
        self.zones.append(self._zone)
        self._encounter = None
        self._last_combat = None
        self._encounter_players = set()
        self._zone_players = {}

    def _on_add_combatant(self, line: str) -> None:
        if self._zone is None:
            return
        parts = line.split("|")
        if len(parts) < 5:
            return
        player_id = parts[2].upper()
        name = parts[3]
        if classify(player_id) != "player" or is_pet(name):
            return
        if player_id in self._zone_players:
            return
        job_id = parse_value(parts[4], int, default=0)
        self._zone_players[player_id] = ZonePlayer(id=player_id, name=name, job_id=job_id)
        self._encounter_players.add(player_id)

    def _on_combat_action(self, line: str, timestamp: datetime) -> None:
        if self._zone is None:
            return
        parts = line.split("|", 4)
        if len(parts) < 4:
            return
        source_id, source_name = parts[2], parts[3]
        if classify(source_id) != "enemy":
            return
        gap_exceeded = (
            self._last_combat is not None
            and timestamp - self._last_combat > COMBAT_GAP_THRESHOLD
        )
        if self._encounter is None or gap_exceeded:
            if self._encounter is not None and self._encounter.end_time is None:
                # Fim = última atividade antes do intervalo
                self._encounter.end_time = self._last_combat or timestamp
            self._finalize_encounter()
            self._encounter = _OpenEncounter(start_time=timestamp, boss_name=source_name or None)
            self._encounter_players = set()
        self._last_combat = timestamp
        if not self._encounter.boss_name and source_name:
            self._encounter.boss_name = source_name

    def _on_actor_control(self, line: str, timestamp: datetime) -> None:
        if self._zone is None or self._encounter is None:
            return
        parts = line.split("|", 5)
        if len(parts) < 4 or parts[3] != WIPE_COMMAND:
            return
        self._encounter.result = "wipe"
        self._encounter.end_time = timestamp
        self._finalize_encounter()
        self._encounter = None
        self._last_combat = None
        self._encounter_players = set()

    def _finish_input(self) -> None:
        if self._zone is None:
            return
        if self._encounter is not None and self._encounter.end_time is None:
            self._encounter.end_time = self._last_combat or self._encounter.start_time
        self._finalize_encounter()
        zone = self._zone
        if self._last_combat is not None:
            end_time = self._last_combat
        elif zone.encounters:
            end_time = zone.encounters[-1].end_time
        else:
            end_time = zone.start_time
        self._close_zone(end_time)

    def _close_zone(self, end_time: datetime) -> None:
        zone = self._zone
        if zone is None:
            return
        zone.end_time = end_time
        zone.players = list(self._zone_players.values())
        logger.debug(
            "Zona %s (%s) fechada: %s encounters, %s jogadores",
            zone.zone_name,
            hex(zone.zone_id),
            len(zone.encounters),
            len(zone.players),
        )

    def _finalize_encounter(self) -> None:
        """Adiciona o encounter aberto à zona se tiver a duração mínima."""
        encounter, zone = self._encounter, self._zone
        if encounter is None or zone is None:
            return
        end_time = encounter.end_time or encounter.start_time
        elapsed = end_time - encounter.start_time
        if elapsed < MIN_ENCOUNTER_DURATION:
            logger.debug(
                "Encounter descartado (%.1fs < minimo): %s",
                elapsed.total_seconds(),
                encounter.boss_name,
            )
            return
        zone.encounters.append(
            Encounter(
                id=_encounter_id(encounter.start_time),
                start_time=encounter.start_time,
                end_time=end_time,
                duration_ms=int(elapsed / timedelta(milliseconds=1)),
                result=encounter.result,
                boss_name=encounter.boss_name,
                player_count=len(self._encounter_players),
            )
        )


def scan_structure(
    text: str, filename: str = "", options: StructureOptions | None = None
) -> LogStructure:
    return StructureScanner(text, filename, options).run()


def is_raid_zone(zone_id: int) -> bool:
    return zone_id in RAID_ZONE_IDS


def format_duration(ms: float) -> str:
    """Duração em ``m:ss``."""
    total_seconds = int(ms // 1000)
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes}:{seconds:02d}"


def format_time(ts: datetime) -> str:
    """Horário em ``HH:MM:SS`` no fuso do próprio log."""
    return ts.strftime("%H:%M:%S")
