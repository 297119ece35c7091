"""
Rich-based live status panel for a running measurement.

All formatting helpers live in ``engine.stats`` -- this module only does
presentation via the ``rich`` library.
"""
from __future__ import annotations

from typing import Optional

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from engine.constants import NO_METRIC

console = Console()

READY_STATUS = "Ready to test"


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------

def print_header() -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]SpeedMon[/bold cyan]\n"
            "[dim]Monitor your network speed and latency[/dim]",
            border_style="cyan",
        )
    )
    console.print()


def render_status(
    status: str,
    metric: str,
    title: str = "Connection Test",
    busy: bool = False,
) -> Panel:
    """Build the status card: status line above a large metric."""
    metric_style = "bold cyan" if metric != NO_METRIC else "dim"
    if status.startswith("Error:"):
        status_style = "bold red"
    elif busy:
        status_style = "bold"
    else:
        status_style = "bold yellow"

    table = Table.grid(padding=(0, 1))
    table.add_column(justify="center")
    table.add_row(Text(status, style=status_style))
    table.add_row(Text(metric, style=metric_style))

    hint = Text(
        "Press Ctrl-C to stop the test" if busy else "Idle",
        style="dim",
        justify="center",
    )
    return Panel(
        Group(table, hint),
        title=f"[bold]{title}[/bold]",
        border_style="cyan" if busy else "blue",
        padding=(1, 4),
    )


# ---------------------------------------------------------------------------
# Live display
# ---------------------------------------------------------------------------

class LiveDashboard:
    """
    Reporting sink that keeps one status card refreshed in place.

    Call the instance with ``(status, metric)``; pass :meth:`set_busy` as the
    controller's ``on_busy_changed`` callback.
    """

    def __init__(
        self,
        title: str = "Connection Test",
        output_console: Optional[Console] = None,
    ) -> None:
        self.title = title
        self.status = READY_STATUS
        self.metric = NO_METRIC
        self.busy = False
        self.updates = 0
        self._console = output_console if output_console is not None else console
        self._live: Optional[Live] = None

    def __enter__(self) -> LiveDashboard:
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self.stop()

    def start(self) -> None:
        self._live = Live(
            self.render(),
            console=self._console,
            refresh_per_second=10,
        )
        self._live.start()

    def stop(self) -> None:
        if self._live is not None:
            self._live.update(self.render(), refresh=True)
            self._live.stop()
            self._live = None

    def __call__(self, status: str, metric: str) -> None:
        self.status = status
        self.metric = metric
        self.updates += 1
        self._refresh()

    def set_busy(self, busy: bool) -> None:
        self.busy = busy
        self._refresh()

    def render(self) -> Panel:
        return render_status(self.status, self.metric, title=self.title, busy=self.busy)

    def _refresh(self) -> None:
        if self._live is not None:
            self._live.update(self.render())
