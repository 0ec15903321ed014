import sys
from collections.abc import Iterator

from colorama import Fore, Style, init
from rich import box
from rich.console import Console
from rich.table import Table
from rich.theme import Theme
from tqdm import tqdm  # type: ignore[import-untyped]

from actlog.structure import LogStructure, format_duration, format_time

init(autoreset=True)  # Inicializa o Colorama para resetar cores automaticamente


# Função para determinar se o terminal suporta emojis
def supports_emoji() -> bool:
    encoding = getattr(sys.stdout, "encoding", None) or ""
    return encoding.lower().startswith("utf")


# Define os ícones ou alternativas de texto
if supports_emoji():
    ICON_CONVERTING = "🔄"
    ICON_SUCCESS = "🎉"
    ICON_RAID = "⚔️"
else:
    ICON_CONVERTING = "[CONVERTING]"
    ICON_SUCCESS = "[SUCCESS]"
    ICON_RAID = "[RAID]"

_RESULT_STYLES = {"wipe": "wipe", "clear": "clear", "unknown": "unknown"}

custom_theme = Theme(
    {
        "wipe": "bold red",
        "clear": "bold green",
        "unknown": "yellow3",
        "zone": "bold cyan",
    }
)


def track_progress(chunks: Iterator[float], desc: str) -> Iterator[float]:
    """Repassa as frações do gerador de janelas de um scanner, mostrando uma barra.

    Quem chama continua dono da iteração; a barra trabalha em permilagem.
    """
    with tqdm(
        total=1000,
        desc=f"{Fore.GREEN}{ICON_CONVERTING} {desc}{Style.RESET_ALL}",
        bar_format="{l_bar}%s{bar}%s| [{elapsed}]" % (Fore.LIGHTGREEN_EX, Style.RESET_ALL),
        leave=False,
    ) as bar:
        for fraction in chunks:
            bar.update(int(fraction * 1000) - bar.n)
            yield fraction
        bar.update(bar.total - bar.n)


def print_structure_table(structure: LogStructure, console: Console | None = None) -> None:
    """Tabela de zonas e encounters de um log."""
    console = console or Console(theme=custom_theme)
    table = Table(
        title=f"{structure.filename} ({structure.total_lines} linhas)",
        box=box.ASCII,
        show_header=True,
        header_style="yellow3",
    )
    table.add_column("Zone", justify="left", style="zone")
    table.add_column("Encounter", justify="left")
    table.add_column("Boss", justify="left")
    table.add_column("Start", justify="center")
    table.add_column("Duration", justify="right")
    table.add_column("Result", justify="center")
    table.add_column("Players", justify="right")

    for zone in structure.zones:
        zone_label = f"{ICON_RAID} {zone.zone_name}" if zone.is_raid else zone.zone_name
        if not zone.encounters:
            table.add_row(zone_label, "-", "-", format_time(zone.start_time), "-", "-", str(len(zone.players)))
            continue
        for encounter in zone.encounters:
            style = _RESULT_STYLES.get(encounter.result, "unknown")
            table.add_row(
                zone_label,
                encounter.id,
                encounter.boss_name or "?",
                format_time(encounter.start_time),
                format_duration(encounter.duration_ms),
                f"[{style}]{encounter.result}[/{style}]",
                str(encounter.player_count),
            )
            zone_label = ""

    console.print(table)


def print_summary(converted: int, total: int) -> None:
    print(
        f"\n{Fore.LIGHTGREEN_EX}{ICON_SUCCESS} Files converted:"
        f" {converted}/{total} {ICON_SUCCESS}{Style.RESET_ALL}"
    )
