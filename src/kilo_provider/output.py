"""Console output for the kilo-provider CLI.

stdout only ever carries what a script would capture: the token printed by
``login`` and the catalog printed by ``models``. Everything addressed to the
person at the terminal (the verification prompt, poll progress, warnings,
errors) goes to stderr, so ``export KILO_API_KEY=$(kilo-provider login)``
works while the prompt stays visible.

The catalog is rendered from :class:`~kilo_provider.models.NormalizedModel`
records directly. ``--json`` dumps them unchanged; the table formats are
for reading only.

Poll progress ("... (597s remaining)") is redrawn in place when stderr is
a terminal and printed line by line otherwise. Any other message ends the
progress line first.

Colour is off with ``--no-color``, with ``NO_COLOR`` set to any value, or
with ``TERM=dumb``.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import IO, TYPE_CHECKING, Optional, Sequence

from rich.console import Console
from rich.table import Table
from rich.text import Text

if TYPE_CHECKING:
    from kilo_provider.models import NormalizedModel

MODEL_COLUMNS = (
    "ID",
    "Name",
    "Context",
    "Max output",
    "Input $/M",
    "Output $/M",
    "Reasoning",
    "Images",
)
_NUMERIC_COLUMNS = {"Context", "Max output", "Input $/M", "Output $/M"}


class OutputFormat(str, Enum):
    """``AUTO`` resolves to ``RICH`` on a colour terminal and ``PLAIN`` otherwise."""

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class OutputManager:
    """Routes CLI output to the right stream in the right format.

    Args:
        format: Requested format for stdout data.
        no_color: Disable colour on both streams.
        quiet: Drop informational stderr messages. Warnings and errors stay.
        verbose: Show debug messages.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _color_disabled_by_env()
        self._quiet = quiet
        self._verbose = verbose

        if format is OutputFormat.AUTO:
            rich_ok = _isatty(sys.stdout) and not self._no_color
            format = OutputFormat.RICH if rich_ok else OutputFormat.PLAIN
        self._format = format

        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=format is OutputFormat.RICH,
        )
        self._stderr = Console(file=sys.stderr, no_color=self._no_color)

        self._redraw_progress = _isatty(sys.stderr)
        self._progress_width = 0

    @property
    def format(self) -> OutputFormat:
        return self._format

    # ------------------------------------------------------------------ #
    # stdout
    # ------------------------------------------------------------------ #

    def print_data(self, text: str) -> None:
        self._end_progress()
        print(text, file=sys.stdout, flush=True)

    def print_models(self, models: Sequence[NormalizedModel]) -> None:
        """Print a catalog listing in the active format.

        JSON output is the list of model dicts with numbers kept as numbers.
        Plain output is tab-separated with a header line. Rich output is a
        table titled with the model count.
        """
        if self._format is OutputFormat.JSON:
            self.print_data(json.dumps([m.model_dump() for m in models], indent=2))
            return

        rows = [_model_row(m) for m in models]
        if self._format is OutputFormat.PLAIN:
            self.print_data("\n".join("\t".join(cells) for cells in [list(MODEL_COLUMNS), *rows]))
            return

        self._end_progress()
        table = Table(title=f"Kilo models ({len(rows)})", header_style="bold cyan")
        for column in MODEL_COLUMNS:
            table.add_column(column, justify="right" if column in _NUMERIC_COLUMNS else "left")
        for cells in rows:
            table.add_row(*cells)
        self._stdout.print(table)

    # ------------------------------------------------------------------ #
    # stderr
    # ------------------------------------------------------------------ #

    def info(self, message: str) -> None:
        if not self._quiet:
            self._emit(Text(message))

    def success(self, message: str) -> None:
        if not self._quiet:
            self._emit(Text(message, style="green"))

    def suggest(self, message: str) -> None:
        if not self._quiet:
            self._emit(Text(f"→ {message}", style="dim"))

    def warning(self, message: str) -> None:
        self._emit(Text.assemble(("Warning:", "yellow"), f" {message}"))

    def error(self, message: str) -> None:
        self._emit(Text.assemble(("Error:", "bold red"), f" {message}"))

    def debug(self, message: str) -> None:
        if self._verbose:
            self._emit(Text(f"[debug] {message}", style="dim"))

    def progress(self, message: str) -> None:
        """Show a status line, replacing the previous one on a terminal."""
        if self._quiet:
            return
        if not self._redraw_progress:
            self._emit(Text(message, style="dim"))
            return
        padding = " " * max(0, self._progress_width - len(message))
        sys.stderr.write(f"\r{message}{padding}")
        sys.stderr.flush()
        self._progress_width = len(message)

    def _emit(self, text: Text) -> None:
        self._end_progress()
        if self._no_color:
            print(text.plain, file=sys.stderr, flush=True)
        else:
            self._stderr.print(text)

    def _end_progress(self) -> None:
        if self._progress_width:
            sys.stderr.write("\n")
            sys.stderr.flush()
            self._progress_width = 0


def _model_row(model: NormalizedModel) -> list[str]:
    return [
        model.id,
        model.name,
        str(model.context_window),
        str(model.max_tokens),
        _format_cost(model.cost.input),
        _format_cost(model.cost.output),
        "yes" if model.reasoning else "no",
        "yes" if "image" in model.input else "no",
    ]


def _format_cost(value: float) -> str:
    """Shortest form that keeps sub-cent prices visible (``0.075``, ``3``)."""
    return f"{value:g}"


def _isatty(stream: IO[str]) -> bool:
    return hasattr(stream, "isatty") and stream.isatty()


def _color_disabled_by_env() -> bool:
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


# ------------------------------------------------------------------ #
# Process-wide instance, installed by the CLI callback
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    global _output
    _output = None


def print_data(text: str) -> None:
    get_output().print_data(text)


def print_models(models: Sequence[NormalizedModel]) -> None:
    get_output().print_models(models)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def suggest(message: str) -> None:
    get_output().suggest(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)


def debug(message: str) -> None:
    get_output().debug(message)


def progress(message: str) -> None:
    get_output().progress(message)
