"""CLI entry point using Typer."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, TextIO

import typer

if TYPE_CHECKING:
    from avatartrack.config import AppConfig

app = typer.Typer(
    name="avatartrack",
    help="Real-time landmark-driven 2D avatar rig.",
    no_args_is_help=False,
)


def _config(ctx: typer.Context) -> AppConfig:
    from avatartrack.config import load_config
    from avatartrack.errors import ConfigLoadError

    path = (ctx.obj or {}).get("config_path")
    try:
        return load_config(path)
    except ConfigLoadError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None


def _parse_window(text: str) -> tuple[float, float]:
    start, sep, end = text.partition(":")
    try:
        if not sep:
            raise ValueError(text)
        window = (float(start), float(end))
    except ValueError:
        msg = f"expected START:END in seconds, got {text!r}"
        raise typer.BadParameter(msg) from None
    if window[1] <= window[0]:
        msg = f"window end must be after start: {text!r}"
        raise typer.BadParameter(msg)
    return window


@app.command()
def run(
    ctx: typer.Context,
    seconds: Annotated[float, typer.Option("--seconds", "-s", help="How long to track")] = 3.0,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write JSON lines here instead of stdout"),
    ] = None,
    dropout: Annotated[
        list[str] | None,
        typer.Option("--dropout", help="START:END seconds with nobody detected (repeatable)"),
    ] = None,
    failure: Annotated[
        list[str] | None,
        typer.Option("--failure", help="START:END seconds during which the detector raises"),
    ] = None,
    fps: Annotated[float | None, typer.Option("--fps", help="Override target FPS")] = None,
) -> None:
    """Drive a tracking session with the synthetic detector and emit rig states."""
    import asyncio
    import sys
    import time

    from avatartrack.detection import DetectionAdapter, SyntheticDetectionProvider
    from avatartrack.render import JsonLinesRenderer
    from avatartrack.session import TrackingSession

    config = _config(ctx)
    if fps is not None:
        config = config.model_copy(
            update={"session": config.session.model_copy(update={"target_fps": fps})},
        )
    dropouts = [_parse_window(w) for w in dropout or []]
    failures = [_parse_window(w) for w in failure or []]

    origin = time.monotonic()

    def clock() -> float:
        return time.monotonic() - origin

    async def _run(stream: TextIO) -> int:
        provider = SyntheticDetectionProvider(
            *config.session.surface, clock=clock, dropouts=dropouts, failures=failures,
        )
        renderer = JsonLinesRenderer(stream)
        session = TrackingSession(DetectionAdapter(provider), renderer, config=config, clock=clock)
        async with session:
            await asyncio.sleep(seconds)
        return renderer.count

    if output is None:
        count = asyncio.run(_run(sys.stdout))
    else:
        output.parent.mkdir(parents=True, exist_ok=True)
        with output.open("w") as fh:
            count = asyncio.run(_run(fh))
        typer.echo(f"Wrote {count} rig states to {output}")


@app.command()
def fallback(
    at: Annotated[float, typer.Option("--time", "-t", help="Time in seconds")] = 0.0,
) -> None:
    """Print the procedural fallback channels at a point in time."""
    import json

    from avatartrack.models import Channel
    from avatartrack.pipeline import FallbackGenerator

    channels = FallbackGenerator().sample(at)
    data = {
        str(channel): (
            [list(p) if p is not None else None for p in value]
            if channel is Channel.BODY
            else value
        )
        for channel, value in channels.items()
    }
    typer.echo(json.dumps(data, indent=2))


@app.command()
def snapshot(
    ctx: typer.Context,
    output: Annotated[Path, typer.Argument(help="PNG file to write")],
    at: Annotated[float, typer.Option("--time", "-t", help="Time in seconds")] = 0.0,
    no_detection: Annotated[
        bool, typer.Option("--no-detection", help="Render the fallback pose instead")
    ] = False,
    frames: Annotated[
        int, typer.Option("--frames", "-n", min=1, help="Frames to settle before rendering")
    ] = 30,
) -> None:
    """Render the rig at time T to a PNG image."""
    from avatartrack.detection import (
        Detected,
        DetectionAdapter,
        SyntheticDetectionProvider,
        Unavailable,
        synthetic_person,
    )
    from avatartrack.render import RecordingRenderer, save_snapshot
    from avatartrack.session import TrackingSession

    config = _config(ctx)
    width, height = config.session.surface
    session = TrackingSession(
        DetectionAdapter(SyntheticDetectionProvider(width, height)),
        RecordingRenderer(),
        config=config,
    )
    interval = config.session.frame_interval

    def result_at(t: float) -> Detected | Unavailable:
        return Unavailable() if no_detection else Detected(synthetic_person(t, width, height))

    # Settle the smoothing on the frames leading up to T.
    for i in range(frames - 1, 0, -1):
        t = at - i * interval
        session.process(result_at(t), t)
    state = session.process(result_at(at), at)
    save_snapshot(
        state, output, width=width, height=height, forearm_length=config.rig.forearm_length,
    )
    typer.echo(f"Saved: {output} ({state.source})")


@app.command()
def serve(
    ctx: typer.Context,
    port: Annotated[int, typer.Option("--port", "-p", help="WebSocket port")] = 8766,
    http_port: Annotated[
        int | None, typer.Option("--http-port", help="Also serve a preview page on this port")
    ] = None,
    seconds: Annotated[
        float | None, typer.Option("--seconds", "-s", help="Stop after this long")
    ] = None,
) -> None:
    """Broadcast a live synthetic session over WebSocket."""
    import asyncio

    from avatartrack.detection import DetectionAdapter, create_provider
    from avatartrack.render import WebSocketRenderer
    from avatartrack.session import TrackingSession

    config = _config(ctx)

    async def _serve() -> None:
        renderer = WebSocketRenderer(port=port, http_port=http_port)
        provider = create_provider(config.detection, surface=config.session.surface)
        async with renderer:
            typer.echo(f"Rig stream at ws://localhost:{renderer.bound_port}")
            if http_port is not None:
                typer.echo(f"Preview page at http://localhost:{http_port}")
            async with TrackingSession(DetectionAdapter(provider), renderer, config=config):
                if seconds is None:
                    await asyncio.Future()
                else:
                    await asyncio.sleep(seconds)

    typer.echo("Press Ctrl+C to stop")
    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        typer.echo("\nStopped.")


@app.command("config")
def show_config(ctx: typer.Context) -> None:
    """Print the effective configuration as JSON."""
    typer.echo(_config(ctx).model_dump_json(indent=2))


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: Annotated[
        bool, typer.Option("--version", "-v", help="Show version", is_eager=True)
    ] = False,
    log_level: Annotated[
        str, typer.Option("--log-level", help="Logging level (DEBUG, INFO, WARNING, ...)")
    ] = "WARNING",
    config_path: Annotated[
        Path | None, typer.Option("--config", "-c", help="TOML configuration file")
    ] = None,
) -> None:
    """avatartrack - real-time landmark-driven 2D avatar rig."""
    if version:
        from avatartrack import __version__

        typer.echo(f"avatartrack {__version__}")
        raise typer.Exit()
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        typer.echo(f"Error: unknown log level {log_level!r}", err=True)
        raise typer.Exit(2)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    ctx.obj = {"config_path": config_path}
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()
