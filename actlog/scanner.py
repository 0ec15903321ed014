"""
Varredura em janelas do log do ACT -> ParsedLogData.

O ``ChunkedScanner`` é uma função de passo: cada iteração de ``chunks()``
processa uma janela de caracteres e devolve o progresso, deixando o
chamador decidir quando continuar (laço síncrono, barra do tqdm, asyncio).
``scan`` roda tudo de uma vez; ``scan_async`` cede ao event loop entre
janelas. Os três caminhos produzem o mesmo resultado.
"""

import asyncio
import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import datetime

from actlog.combatants import ParsedCombatant, extract_combatant
from actlog.events import (
    STATUS_EVENT_CODES,
    SUPPORTED_EVENT_CODES,
    AddCombatant,
    EventCode,
    LogEvent,
    StartsCasting,
    StatusAdd,
    StatusRemove,
    Tether,
    WaymarkMarker,
    decode_line,
    peek_event_code,
)
from actlog.jobs import role_priority_key
from actlog.windows import CancelToken, ProgressReporter, iter_line_windows

logger = logging.getLogger("actlog.scanner")

MAX_EVENTS = 50_000
MAX_STATUS_EVENTS = 10_000
CHUNK_SIZE = 50_000  # caracteres por janela


@dataclass(slots=True)
class ScanOptions:
    max_events: int = MAX_EVENTS
    max_status_events: int = MAX_STATUS_EVENTS
    include_status: bool = True
    on_progress: Callable[[float], None] | None = None
    chunk_size: int = CHUNK_SIZE
    cancel_token: CancelToken | None = None


@dataclass(slots=True)
class ParsedLogData:
    start_time: datetime | None
    end_time: datetime | None
    combatants: list[ParsedCombatant] = field(default_factory=list)
    players: list[ParsedCombatant] = field(default_factory=list)
    enemies: list[ParsedCombatant] = field(default_factory=list)
    status_events: list[StatusAdd | StatusRemove] = field(default_factory=list)
    cast_events: list[StartsCasting] = field(default_factory=list)
    waymarks: list[WaymarkMarker] = field(default_factory=list)
    tethers: list[Tether] = field(default_factory=list)
    all_events: list[LogEvent] = field(default_factory=list)
    # True quando algum limite (max_events / max_status_events) cortou linhas
    truncated: bool = False

    @property
    def status_adds(self) -> list[StatusAdd]:
        return [e for e in self.status_events if isinstance(e, StatusAdd)]

    @property
    def status_removes(self) -> list[StatusRemove]:
        return [e for e in self.status_events if isinstance(e, StatusRemove)]


class ChunkedScanner:
    def __init__(self, text: str, options: ScanOptions | None = None) -> None:
        self.text = text
        self.options = options or ScanOptions()
        self._events: list[LogEvent] = []
        self._combatants: dict[str, ParsedCombatant] = {}
        self._status_count = 0
        self._first: datetime | None = None
        self._last: datetime | None = None
        self._truncated = False
        self._started = False
        self._finished = False
        self._progress = ProgressReporter(self.options.on_progress)

    @property
    def finished(self) -> bool:
        return self._finished

    def chunks(self) -> Iterator[float]:
        """Processa uma janela por iteração e devolve a fração consumida."""
        if self._started:
            raise RuntimeError("ChunkedScanner.chunks() can only be consumed once")
        self._started = True
        total = len(self.text)
        cancel = self.options.cancel_token
        for lines, consumed in iter_line_windows(self.text, self.options.chunk_size):
            if cancel is not None:
                cancel.raise_if_cancelled()
            if not self._consume(lines):
                break
            fraction = consumed / total
            self._progress.update(fraction)
            if consumed < total:
                yield fraction
        self._finished = True
        self._progress.finish()
        logger.debug(
            "Varredura concluida: %s eventos, %s combatentes, truncado=%s",
            len(self._events),
            len(self._combatants),
            self._truncated,
        )

    def run(self) -> ParsedLogData:
        for _ in self.chunks():
            pass
        return self.result()

    def _consume(self, lines: list[str]) -> bool:
        """Processa as linhas da janela; False quando max_events foi atingido."""
        opts = self.options
        for line in lines:
            if not line:
                continue
            # Checagem barata: só o código, sem decodificar
            event_code = peek_event_code(line)
            if event_code not in SUPPORTED_EVENT_CODES:
                continue
            if event_code in STATUS_EVENT_CODES:
                if not opts.include_status:
                    continue
                if self._status_count >= opts.max_status_events:
                    self._truncated = True
                    continue
            if (event := decode_line(line)) is None:
                continue
            # Só um evento que seria guardado conta como corte
            if len(self._events) >= opts.max_events:
                self._truncated = True
                return False
            self._record(event)
        return True

    def _record(self, event: LogEvent) -> None:
        ts = event.timestamp
        if self._first is None or ts < self._first:
            self._first = ts
        if self._last is None or ts > self._last:
            self._last = ts
        self._events.append(event)
        if event.event_code in STATUS_EVENT_CODES:
            self._status_count += 1
        elif isinstance(event, AddCombatant):
            combatant = extract_combatant(event)
            if combatant and combatant.id and combatant.id not in self._combatants:
                self._combatants[combatant.id] = combatant

    def result(self) -> ParsedLogData:
        if not self._finished:
            raise RuntimeError("Scan not finished; consume chunks() first")
        combatants = list(self._combatants.values())
        players = sorted(
            (c for c in combatants if c.is_player),
            key=lambda c: role_priority_key(c.job_id),
        )
        enemies = [c for c in combatants if not c.is_player]
        events = self._events
        return ParsedLogData(
            start_time=self._first,
            end_time=self._last,
            combatants=combatants,
            players=players,
            enemies=enemies,
            status_events=[e for e in events if e.event_code in STATUS_EVENT_CODES],
            cast_events=[e for e in events if e.event_code == EventCode.STARTS_CASTING],
            waymarks=[e for e in events if e.event_code == EventCode.WAYMARK_MARKER],
            tethers=[e for e in events if e.event_code == EventCode.TETHER],
            all_events=list(events),
            truncated=self._truncated,
        )


def scan(text: str, options: ScanOptions | None = None) -> ParsedLogData:
    """Passada imediata, sem ceder controle."""
    return ChunkedScanner(text, options).run()


async def scan_async(text: str, options: ScanOptions | None = None) -> ParsedLogData:
    """Mesma passada, cedendo ao event loop entre janelas."""
    scanner = ChunkedScanner(text, options)
    for _ in scanner.chunks():
        await asyncio.sleep(0)
    return scanner.result()
