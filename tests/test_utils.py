from rich.console import Console

from actlog.structure import StructureOptions, StructureScanner, scan_structure
from actlog.utils import custom_theme, print_structure_table, print_summary, track_progress


def test_track_progress_drives_scanner(end_to_end_log):
    """A barra só repassa as frações; quem itera é o chamador."""
    scanner = StructureScanner(end_to_end_log, "x.log", StructureOptions(chunk_size=80))
    chunks = track_progress(scanner.chunks(), "x.log")

    assert not scanner.finished
    fractions = list(chunks)

    assert len(fractions) > 1
    assert fractions == sorted(fractions)
    assert all(0.0 < value < 1.0 for value in fractions)
    assert len(scanner.result().encounters) == 2


def test_print_structure_table(end_to_end_log):
    console = Console(record=True, width=200, theme=custom_theme)
    structure = scan_structure(end_to_end_log, "Network_27100_20240115.log")

    print_structure_table(structure, console)
    output = console.export_text()

    assert "Network_27100_20240115.log" in output
    assert "AAC Heavyweight M2 (Savage)" in output
    assert "wipe" in output
    assert "0:13" in output


def test_print_summary(capsys):
    print_summary(3, 4)

    assert "3/4" in capsys.readouterr().out
