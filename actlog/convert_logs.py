"""
Conversor de logs de rede do ACT -> JSON estruturado.

Este arquivo atua como o "roteador" principal (Maestro): lê os arquivos
de log do diretório de entrada, extrai a estrutura (zonas e encounters)
de cada um e gera uma timeline normalizada por encounter. A decodificação
fica em events.py/scanner.py, a segmentação em structure.py e a conversão
em converter.py.
"""

import logging
import os
import sys
from collections import defaultdict
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from multiprocessing import cpu_count
from pathlib import Path
from typing import Any

import chardet
import orjson
from tqdm import tqdm  # type: ignore[import-untyped]

from actlog.converter import DEFAULT_ARENA_CENTER, ConversionOptions, convert
from actlog.scanner import MAX_EVENTS, MAX_STATUS_EVENTS
from actlog.structure import LogStructure, StructureScanner
from actlog.time_range import ExtractOptions, extract_encounter
from actlog.utils import print_structure_table, print_summary, track_progress

logger = logging.getLogger("actlog")  # console/general logger
file_logger = logging.getLogger("actlog.file")  # arquivo convert_logs.log
PROJECT_ROOT = Path(__file__).resolve().parent.parent
LOG_DIR = PROJECT_ROOT / "output_json"
LOG_FILE_NAME = "convert_logs.log"
LOG_SUFFIXES = (".log", ".txt")
JSON_WRITE_BUFFER_BYTES: int = 2 * 1024 * 1024  # buffer de escrita
DEFAULT_FPS = 30


def _configure_stdout() -> None:
    if str(getattr(sys.stdout, "encoding", "")).lower() != "utf-8" and hasattr(
        sys.stdout, "reconfigure"
    ):
        try:
            sys.stdout.reconfigure(encoding="utf-8")
        except AttributeError:
            logger.warning("Nao foi possivel reconfigurar stdout para utf-8")


def _configure_logging(log_dir: Path = LOG_DIR, *, for_worker: bool = False) -> None:
    log_dir.mkdir(parents=True, exist_ok=True)
    log_level = os.getenv("ACT_LOG_LEVEL", "WARNING").upper()
    level = getattr(logging, log_level, logging.WARNING)
    fmt = "%(asctime)s %(levelname)s [%(process)d] %(name)s: %(message)s"
    file_mode = "a" if for_worker else "w"
    file_handler = RotatingFileHandler(
        log_dir / LOG_FILE_NAME,
        mode=file_mode,
        maxBytes=5 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
        delay=True,
    )
    file_handler.setLevel(logging.ERROR)
    handlers: list[logging.Handler] = [file_handler]
    if not for_worker:
        handlers.append(logging.StreamHandler(sys.stdout))
    logging.basicConfig(
        level=level,
        format=fmt,
        handlers=handlers,
        force=True,
    )
    logger.setLevel(level)
    file_logger.setLevel(level)


def _log_aggregated_errors(errors: dict[str, int]) -> None:
    for msg, count in errors.items():
        if count > 1:
            logger.error("%s (repetido %s vezes)", msg, count)
        else:
            logger.error("%s", msg)


@dataclass(slots=True)
class Config:
    input_dir: Path
    output_dir: Path
    max_workers: int | None
    fps: int = DEFAULT_FPS
    arena_center: tuple[float, float] = DEFAULT_ARENA_CENTER
    max_events: int = MAX_EVENTS
    max_status_events: int = MAX_STATUS_EVENTS


def _env_int(name: str, default: int | None) -> int | None:
    raw = os.getenv(name)
    return int(raw) if raw and raw.isdigit() else default


def _parse_center(raw: str | None) -> tuple[float, float]:
    """'x,y' -> (x, y); valor inválido cai no centro padrão."""
    if not raw:
        return DEFAULT_ARENA_CENTER
    try:
        x_str, y_str = raw.split(",")
        return float(x_str), float(y_str)
    except ValueError:
        logger.warning("ACT_ARENA_CENTER invalido (%s); usando %s", raw, DEFAULT_ARENA_CENTER)
        return DEFAULT_ARENA_CENTER


def load_config_from_env() -> Config:
    default_input = PROJECT_ROOT / "logs"
    return Config(
        input_dir=Path(os.getenv("ACT_LOG_INPUT_DIR", default_input)),
        output_dir=Path(os.getenv("ACT_LOG_OUTPUT_DIR", LOG_DIR)),
        max_workers=_env_int("ACT_MAX_WORKERS", None),
        fps=_env_int("ACT_FPS", DEFAULT_FPS) or DEFAULT_FPS,
        arena_center=_parse_center(os.getenv("ACT_ARENA_CENTER")),
        max_events=_env_int("ACT_MAX_EVENTS", MAX_EVENTS) or MAX_EVENTS,
        max_status_events=_env_int("ACT_MAX_STATUS_EVENTS", MAX_STATUS_EVENTS)
        or MAX_STATUS_EVENTS,
    )


def read_log_text(path: Path) -> str:
    """Lê o log como UTF-8; se falhar, tenta a codificação detectada pelo chardet."""
    raw = path.read_bytes()
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        encoding = chardet.detect(raw)["encoding"]
        if not encoding:
            raise ValueError(f"Could not detect encoding of {path.name}") from None
        logger.warning("%s nao e UTF-8; usando %s", path.name, encoding)
        return raw.decode(encoding, errors="replace")


def _write_json(dst: Path, payload: Any) -> None:
    tmp_dst = dst.with_suffix(dst.suffix + ".part")
    with tmp_dst.open("wb", buffering=JSON_WRITE_BUFFER_BYTES) as handle:
        handle.write(orjson.dumps(payload, option=orjson.OPT_INDENT_2))
    tmp_dst.replace(dst)


def convert_file(file_path: Path, cfg: Config, *, interactive: bool = False) -> LogStructure:
    """Estrutura + uma timeline por encounter de um único arquivo."""
    text = read_log_text(file_path)
    scanner = StructureScanner(text, file_path.name)
    chunks = scanner.chunks()
    if interactive:
        chunks = track_progress(chunks, file_path.name)
    for _ in chunks:
        pass
    structure = scanner.result()
    _write_json(cfg.output_dir / f"{file_path.stem}.structure.json", structure)

    extract_options = ExtractOptions(
        max_events=cfg.max_events, max_status_events=cfg.max_status_events
    )
    for zone, encounter in structure.encounters:
        parsed = extract_encounter(text, zone, encounter, extract_options)
        if parsed.truncated:
            logger.warning(
                "Encounter %s de %s truncado pelos limites de eventos",
                encounter.id,
                file_path.name,
            )
        timeline = convert(
            parsed,
            ConversionOptions(
                mechanic_name=f"{zone.zone_name} - {encounter.boss_name or 'Unknown'}",
                fps=cfg.fps,
                arena_center=cfg.arena_center,
            ),
        )
        _write_json(cfg.output_dir / f"{file_path.stem}.{encounter.id}.json", timeline)

    logger.info(
        "%s: %s zonas, %s encounters",
        file_path.name,
        len(structure.zones),
        len(structure.encounters),
    )
    return structure


def process_single_file(args: tuple[Path, Config, bool]) -> tuple[bool, list[str]]:
    file_path, cfg, interactive = args
    _configure_stdout()
    if not interactive:
        _configure_logging(cfg.output_dir, for_worker=True)
    try:
        structure = convert_file(file_path, cfg, interactive=interactive)
    except (OSError, ValueError) as exc:
        err_type = exc.__class__.__name__
        msg = f"Erro ao converter {file_path.name} [{err_type}]: {exc}"
        logger.exception("%s", msg)
        file_logger.exception("%s", msg)
        return False, [msg]
    except Exception as exc:  # pragma: no cover - fallback para erros inesperados
        err_type = exc.__class__.__name__
        msg = f"Erro inesperado ao converter {file_path.name} [{err_type}]: {exc}"
        logger.exception("%s", msg)
        file_logger.exception("%s", msg)
        return False, [msg]
    if interactive:
        print_structure_table(structure)
    return True, []


def list_log_files(input_dir: Path) -> list[Path]:
    return sorted(p for p in input_dir.iterdir() if p.suffix.lower() in LOG_SUFFIXES)


def process_files(
    log_files: list[Path],
    cfg: Config,
    *,
    max_files: int | None = None,
) -> int:
    resolved_max_workers = (
        max(1, cfg.max_workers) if cfg.max_workers is not None else min(2, cpu_count())
    )
    if max_files is not None and max_files > 0:
        log_files = sorted(log_files, key=lambda p: p.stat().st_size)[:max_files]
    if not log_files:
        logger.info("Nenhum arquivo de log para converter.")
        return 0

    if resolved_max_workers == 1:
        converted, aggregated_errors = _run_conversion_serial(log_files, cfg)
    else:
        converted, aggregated_errors = _run_conversion_batch(
            log_files, cfg, resolved_max_workers
        )

    skipped = len(log_files) - converted
    logger.info("Arquivos convertidos: %s; com erro: %s", converted, skipped)
    if aggregated_errors:
        _log_aggregated_errors(aggregated_errors)
    print_summary(converted, len(log_files))
    return converted


def _run_conversion_serial(
    log_files: list[Path], cfg: Config
) -> tuple[int, dict[str, int]]:
    aggregated_errors: dict[str, int] = defaultdict(int)
    converted = 0
    for file_path in log_files:
        success, errors = process_single_file((file_path, cfg, True))
        converted += bool(success)
        for msg in errors:
            aggregated_errors[msg] += 1
    return converted, aggregated_errors


def _run_conversion_batch(
    log_files: list[Path], cfg: Config, max_workers: int
) -> tuple[int, dict[str, int]]:
    aggregated_errors: dict[str, int] = defaultdict(int)
    converted = 0
    args_list = [(file_path, cfg, False) for file_path in log_files]
    with ProcessPoolExecutor(max_workers=max_workers) as executor:
        for success, errors in tqdm(
            executor.map(process_single_file, args_list, chunksize=1),
            total=len(args_list),
            desc="Convertendo logs",
        ):
            converted += bool(success)
            for msg in errors:
                aggregated_errors[msg] += 1
    return converted, aggregated_errors


def check_and_create_directories(input_dir: Path, output_dir: Path) -> None:
    for name, path in [("Input", input_dir), ("Output", output_dir)]:
        path.mkdir(parents=True, exist_ok=True)
        logger.info("OK %s directory: %s", name, path)


def _parse_max_files(argv: list[str]) -> int | None:
    # "-5" limita aos 5 menores arquivos
    if argv and argv[0].startswith("-") and argv[0][1:].isdigit():
        return int(argv[0][1:])
    return None


def main(argv: list[str] | None = None) -> None:
    _configure_stdout()
    cfg = load_config_from_env()
    _configure_logging(cfg.output_dir)
    check_and_create_directories(cfg.input_dir, cfg.output_dir)
    max_files = _parse_max_files(sys.argv[1:] if argv is None else argv)
    process_files(list_log_files(cfg.input_dir), cfg, max_files=max_files)
    logger.info("Conversao concluida.")


if __name__ == "__main__":
    main()
