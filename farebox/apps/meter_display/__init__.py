"""Meter display: text formatting and a rich panel for terminals."""

from __future__ import annotations

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ...domain.models import MeterPhase, MeterSnapshot

PHASE_STYLES = {
    MeterPhase.IDLE: "dim",
    MeterPhase.RUNNING: "bold green",
    MeterPhase.PAUSED: "bold yellow",
}


def format_elapsed(milliseconds: float) -> str:
    """Zero-padded HH:MM:SS. Hours keep counting past 99."""
    total_seconds = max(0, int(milliseconds // 1000))
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def format_distance(meters: float) -> str:
    if meters < 1000:
        return f"{round(meters)}m"
    return f"{meters / 1000:.2f}km"


def format_fare(amount: int, symbol: str = "¥") -> str:
    return f"{symbol}{amount:,}"


def format_speed(kmh: float) -> str:
    return f"{round(kmh)} km/h"


def render_meter(snapshot: MeterSnapshot, currency_symbol: str = "¥") -> Panel:
    """Build a rich panel for one snapshot."""
    fare = Text(format_fare(snapshot.estimated_fare, currency_symbol), style="bold green")

    metrics = Table.grid(padding=(0, 3))
    metrics.add_column(justify="center")
    metrics.add_column(justify="center")
    metrics.add_column(justify="center")
    metrics.add_row("Elapsed", "Distance", "Speed")
    metrics.add_row(
        Text(format_elapsed(snapshot.elapsed_millis), style="bold blue"),
        Text(format_distance(snapshot.total_distance_meters), style="bold dark_orange"),
        Text(format_speed(snapshot.current_speed_kmh), style="bold magenta"),
    )

    body = Table.grid()
    body.add_column(justify="center")
    body.add_row(fare)
    body.add_row("Estimated fare")
    body.add_row("")
    body.add_row(metrics)
    if snapshot.gps_error:
        body.add_row("")
        body.add_row(Text(f"GPS: {snapshot.gps_error}", style="yellow"))

    phase = snapshot.phase
    return Panel(
        body,
        title="Farebox",
        subtitle=Text(phase.value.upper(), style=PHASE_STYLES[phase]),
        expand=False,
    )


__all__ = [
    "format_distance",
    "format_elapsed",
    "format_fare",
    "format_speed",
    "render_meter",
]
