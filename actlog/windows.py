"""
Janelas de linhas completas sobre um texto grande.

Os scanners processam o texto em janelas de tamanho fixo (em caracteres)
e devolvem o controle ao chamador entre uma janela e outra. Uma linha que
começa dentro da janela é processada inteira, mesmo que termine depois.
"""

from collections.abc import Callable, Iterator


class ScanCancelled(Exception):
    """Varredura interrompida por um CancelToken."""


class CancelToken:
    """Flag de cancelamento verificada a cada fronteira de janela."""

    __slots__ = ("_cancelled",)

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise ScanCancelled("Scan cancelled by caller")


def iter_line_windows(text: str, chunk_size: int) -> Iterator[tuple[list[str], int]]:
    """Gera (linhas, caracteres_consumidos) por janela.

    ``\\r`` final de cada linha é removido.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    total = len(text)
    pos = 0
    while pos < total:
        window_end = min(pos + chunk_size, total)
        cut = text.find("\n", window_end - 1)
        if cut == -1:
            cut = total
        lines = [line.rstrip("\r") for line in text[pos:cut].split("\n")]
        pos = cut + 1
        yield lines, min(pos, total)


class ProgressReporter:
    """Progresso monotônico em [0, 1]; 1.0 é emitido uma única vez, no fim."""

    __slots__ = ("_callback", "_last", "_finished")

    def __init__(self, callback: Callable[[float], None] | None) -> None:
        self._callback = callback
        self._last = 0.0
        self._finished = False

    def update(self, fraction: float) -> None:
        if self._callback is None or self._finished:
            return
        if fraction >= 1.0 or fraction < self._last:
            return
        self._last = fraction
        self._callback(fraction)

    def finish(self) -> None:
        if self._finished:
            return
        self._finished = True
        self._last = 1.0
        if self._callback is not None:
            self._callback(1.0)
