from __future__ import annotations

import asyncio
import importlib.metadata as md
from pathlib import Path

import typer
from rich.console import Console
from rich.live import Live

from .apps.meter_display import format_distance, format_elapsed, format_fare, render_meter
from .config import FareboxConfig, load_config, load_config_or_default, resolve_config_path, setup_logging
from .core.events import Event, EventBus, EventType
from .core.tariff import project_fare
from .domain.models import MeterSnapshot
from .infrastructure.clock import AsyncioClock
from .infrastructure.gps.distance import calculate_distance
from .infrastructure.gps.gpsd_client import AsyncGPSClient, GPSConfig, MockGPSClient
from .infrastructure.gps.source import PositionSource
from .meter import FareMeter

# Typer application: tests import this
app = typer.Typer(no_args_is_help=True, add_completion=False, help="Farebox CLI")
console = Console()


@app.command()
def version() -> None:
    """Print version information."""
    try:
        dist_version = md.version("farebox")
    except md.PackageNotFoundError:
        from . import __version__

        dist_version = __version__
    console.print(f"farebox {dist_version}")


@app.command(name="config-validate")
def config_validate(path: Path = typer.Argument(Path("configs/farebox.yml"))) -> None:
    """Validate and show resolved configuration."""
    resolved = resolve_config_path(path)
    console.print(f"Using config: {resolved}")
    try:
        cfg: FareboxConfig = load_config(resolved)
    except Exception as exc:
        console.print(f"Config validation failed: {exc}")
        raise typer.Exit(code=1) from exc
    console.print("Config OK. Tariff:")
    console.print(f"- base fare: {cfg.tariff.base_fare:g}")
    console.print(f"- per minute: {cfg.tariff.per_minute_rate:g}")
    console.print(f"- per km: {cfg.tariff.per_kilometer_rate:g}")


@app.command(name="config-which")
def config_which(path: Path = typer.Option(Path("configs/farebox.yml"), "--config", "-c")) -> None:
    """Print resolved config path by priority rules."""
    console.print(str(resolve_config_path(path)))


@app.command()
def quote(
    minutes: float = typer.Option(..., "--minutes", "-m", min=0),
    km: float = typer.Option(..., "--km", "-k", min=0),
    config: Path | None = typer.Option(None, "--config", "-c"),
) -> None:
    """Quote a fare for an expected trip duration and distance."""
    cfg = _load(config)
    fare = project_fare(cfg.tariff, minutes, km)
    console.print(format_fare(fare, cfg.display.currency_symbol))


@app.command()
def distance(
    lat1: float = typer.Argument(...),
    lng1: float = typer.Argument(...),
    lat2: float = typer.Argument(...),
    lng2: float = typer.Argument(...),
) -> None:
    """Great-circle distance between two points."""
    meters = calculate_distance(lat1, lng1, lat2, lng2)
    console.print(f"{format_distance(meters)} ({meters:.1f} m)")


@app.command()
def run(
    seconds: float = typer.Option(30.0, "--seconds", "-s", min=0),
    config: Path | None = typer.Option(None, "--config", "-c"),
    mock: bool | None = typer.Option(None, "--mock/--gpsd", help="Override gps.mock_mode"),
    no_gps: bool = typer.Option(False, "--no-gps", help="Meter on time alone"),
) -> None:
    """Run a live meter for SECONDS and print the final fare."""
    cfg = _load(config)
    setup_logging(cfg.logging)
    if mock is not None:
        cfg.gps.mock_mode = mock
    if no_gps:
        cfg.gps.enabled = False

    final = asyncio.run(_drive(cfg, seconds))
    if final is None:
        console.print("Meter did not run.")
        raise typer.Exit(code=1)

    sym = cfg.display.currency_symbol
    console.print(
        {
            "fare": format_fare(final.estimated_fare, sym),
            "elapsed": format_elapsed(final.elapsed_millis),
            "distance": format_distance(final.total_distance_meters),
            "route_points": final.route_point_count,
        }
    )


def _load(config: Path | None) -> FareboxConfig:
    try:
        return load_config_or_default(config)
    except Exception as exc:
        console.print(f"Config validation failed: {exc}")
        raise typer.Exit(code=1) from exc


def build_source(cfg: FareboxConfig) -> PositionSource | None:
    """Position source for the gps section, or None when GPS is disabled."""
    gps = cfg.gps
    if not gps.enabled:
        return None
    if gps.mock_mode:
        return MockGPSClient(
            start_lat=gps.mock_lat,
            start_lng=gps.mock_lng,
            speed_mps=gps.mock_speed_mps,
            heading=gps.mock_heading,
            interval=cfg.clock.tick_interval_ms / 1000,
        ).as_source()
    client = AsyncGPSClient(
        GPSConfig(
            host=gps.host,
            port=gps.port,
            timeout=gps.timeout,
            reconnect_delay=gps.reconnect_delay,
        )
    )
    return client.as_source()


async def _drive(cfg: FareboxConfig, seconds: float) -> MeterSnapshot | None:
    sym = cfg.display.currency_symbol
    bus = EventBus()

    @bus.on(EventType.GPS_ERROR)
    async def _gps_error(event: Event) -> None:
        console.log(f"[yellow]GPS:[/yellow] {event.data}")

    @bus.on(EventType.GPS_UNAVAILABLE)
    async def _gps_unavailable(event: Event) -> None:
        console.log("[yellow]No position source, metering time only[/yellow]")

    await bus.start()
    meter = FareMeter.from_config(
        cfg,
        AsyncioClock(),
        build_source(cfg),
        bus=bus,
        on_start=lambda: console.log("Trip started"),
        on_stop=lambda: console.log("Trip ended"),
    )

    try:
        with Live(render_meter(meter.snapshot(), sym), console=console, refresh_per_second=4) as live:
            def _refresh(snapshot: MeterSnapshot) -> None:
                if snapshot.is_running:
                    live.update(render_meter(snapshot, sym))

            meter.on_change = _refresh
            async with meter.running():
                await asyncio.sleep(seconds)
    finally:
        await bus.stop()

    return meter.last_trip


def launch() -> None:
    """Entry point when executed as a module/script."""
    cli()


# Click command export
cli = typer.main.get_command(app)

__all__ = ["app", "cli", "build_source"]

if __name__ == "__main__":
    launch()
