"""Typer CLI entrypoint."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path

import typer

from sp108ectl.core.client import DeviceClient
from sp108ectl.core.config_loader import load_config, select_device
from sp108ectl.core.errors import Sp108eError
from sp108ectl.core.model import DEFAULT_PORT, DeviceConfig, DeviceStatus
from sp108ectl.core.sync import SyncEngine
from sp108ectl.core.tables import CHIP_TYPES, COLOR_ORDERS, animation_mode_code
from sp108ectl.transports.tcp import TCPTransport

app = typer.Typer(help="SP108E LED strip controller control over TCP")


@dataclass
class Target:
    config_path: Path | None = None
    device: str | None = None
    host: str | None = None
    port: int = DEFAULT_PORT


def _resolve_config(target: Target) -> DeviceConfig:
    if target.host:
        return DeviceConfig(name=target.host, host=target.host, port=target.port)
    loaded = load_config(target.config_path)
    return select_device(loaded.devices, target.device)


def _build_client(ctx: typer.Context) -> DeviceClient:
    return _client_for(_resolve_config(ctx.obj))


def _client_for(config: DeviceConfig) -> DeviceClient:
    return DeviceClient(
        config.host,
        config.port,
        chip_type=config.chip,
        transport=TCPTransport(),
        timeout_s=config.timeout_s,
    )


def _fail(exc: Sp108eError) -> typer.Exit:
    typer.echo(f"Error: {exc}", err=True)
    return typer.Exit(code=1)


def _format_status(status: DeviceStatus) -> list[str]:
    chip = CHIP_TYPES[status.chip_type] if status.chip_type < len(CHIP_TYPES) else f"#{status.chip_type}"
    order = COLOR_ORDERS[status.color_order] if status.color_order < len(COLOR_ORDERS) else f"#{status.color_order}"
    return [
        f"power: {'on' if status.on else 'off'}",
        f"mode: {status.animation_mode_name} (0x{status.animation_mode:02x})",
        f"speed: {status.animation_speed} ({status.animation_speed_percentage:.0f}%)",
        f"brightness: {status.brightness} ({status.brightness_percentage:.0f}%)",
        f"white: {status.white_brightness} ({status.white_brightness_percentage:.0f}%)",
        f"color: {status.color} (h={status.hsv.hue} s={status.hsv.saturation} v={status.hsv.value})",
        f"chip: {chip}",
        f"color order: {order}",
        f"segments: {status.segments} x {status.leds_per_segment} LEDs",
        f"recorded patterns: {status.recorded_patterns}",
    ]


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(None, "--config", help="Config file (default: XDG config dir)"),
    device: str | None = typer.Option(None, "--device", help="Configured device name or host"),
    host: str | None = typer.Option(None, "--host", help="Controller host, bypasses the config file"),
    port: int = typer.Option(DEFAULT_PORT, "--port", help="Controller TCP port when --host is given"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log protocol traffic"),
) -> None:
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    ctx.obj = Target(config_path=config, device=device, host=host, port=port)


@app.command("devices")
def list_devices(ctx: typer.Context) -> None:
    """List configured devices."""
    try:
        loaded = load_config(ctx.obj.config_path)
    except Sp108eError as exc:
        raise _fail(exc) from None

    for device in loaded.devices:
        typer.echo(
            f"{device.name}: {device.host}:{device.port} chip={device.chip} "
            f"order={device.color_order} {device.segments}x{device.leds_per_segment}"
        )


@app.command("status")
def show_status(ctx: typer.Context) -> None:
    """Print the current controller status."""
    try:
        status = _build_client(ctx).get_status()
    except Sp108eError as exc:
        raise _fail(exc) from None
    for line in _format_status(status):
        typer.echo(line)


@app.command("on")
def power_on(ctx: typer.Context) -> None:
    """Turn the strip on (no-op when already on)."""
    try:
        toggled = _build_client(ctx).on()
    except Sp108eError as exc:
        raise _fail(exc) from None
    typer.echo("Turned on" if toggled else "Already on")


@app.command("off")
def power_off(ctx: typer.Context) -> None:
    """Turn the strip off (no-op when already off)."""
    try:
        toggled = _build_client(ctx).off()
    except Sp108eError as exc:
        raise _fail(exc) from None
    typer.echo("Turned off" if toggled else "Already off")


@app.command("toggle")
def toggle(ctx: typer.Context) -> None:
    """Toggle power."""
    try:
        _build_client(ctx).toggle_on_off()
    except Sp108eError as exc:
        raise _fail(exc) from None
    typer.echo("Toggled")


@app.command("brightness")
def set_brightness(
    ctx: typer.Context,
    value: float,
    raw: bool = typer.Option(False, "--raw", help="VALUE is 0-255 instead of a percentage"),
) -> None:
    """Set RGB brightness."""
    try:
        client = _build_client(ctx)
        if raw:
            client.set_brightness(int(value))
        else:
            client.set_brightness_percentage(value)
    except Sp108eError as exc:
        raise _fail(exc) from None
    typer.echo(f"Brightness set to {value:g}{'' if raw else '%'}")


@app.command("white")
def set_white(
    ctx: typer.Context,
    value: float,
    raw: bool = typer.Option(False, "--raw", help="VALUE is 0-255 instead of a percentage"),
) -> None:
    """Set white channel brightness (RGBW chips)."""
    try:
        client = _build_client(ctx)
        if not client.supports_white:
            typer.echo(f"Warning: chip {client.chip_type} has no white channel", err=True)
        if raw:
            client.set_white_brightness(int(value))
        else:
            client.set_white_brightness_percentage(value)
    except Sp108eError as exc:
        raise _fail(exc) from None
    typer.echo(f"White brightness set to {value:g}{'' if raw else '%'}")


@app.command("color")
def set_color(ctx: typer.Context, color: str) -> None:
    """Set a static color given as RRGGBB."""
    try:
        _build_client(ctx).set_color(color)
    except Sp108eError as exc:
        raise _fail(exc) from None
    typer.echo(f"Color set to {color}")


@app.command("hsv")
def set_hsv(ctx: typer.Context, hue: float, saturation: float) -> None:
    """Set color from hue (0-360) and saturation (0-100), keeping the current value."""
    try:
        engine = SyncEngine(_build_client(ctx))
        if not engine.poll():
            raise engine.last_error
        engine.set_hue(hue)
        color = engine.set_saturation(saturation)
    except Sp108eError as exc:
        raise _fail(exc) from None
    typer.echo(f"Color set to {color}")


@app.command("speed")
def set_speed(
    ctx: typer.Context,
    value: float,
    raw: bool = typer.Option(False, "--raw", help="VALUE is 0-255 instead of a percentage"),
) -> None:
    """Set animation speed."""
    try:
        client = _build_client(ctx)
        if raw:
            client.set_animation_speed(int(value))
        else:
            client.set_animation_speed_percentage(value)
    except Sp108eError as exc:
        raise _fail(exc) from None
    typer.echo(f"Speed set to {value:g}{'' if raw else '%'}")


@app.command("mode")
def set_mode(ctx: typer.Context, mode: str) -> None:
    """Select an animation by name (e.g. static, meteor) or hex code (e.g. d3)."""
    try:
        code = animation_mode_code(int(mode, 16)) if _is_hex(mode) else animation_mode_code(mode)
        _build_client(ctx).set_animation_mode(code)
    except Sp108eError as exc:
        raise _fail(exc) from None
    typer.echo(f"Mode set to 0x{code:02x}")


def _is_hex(value: str) -> bool:
    try:
        int(value, 16)
    except ValueError:
        return False
    return True


@app.command("dream")
def set_dream(ctx: typer.Context, mode: str) -> None:
    """Select a dream mode 1-180, or 'auto' to cycle through them."""
    try:
        client = _build_client(ctx)
        if mode.lower() == "auto":
            client.set_dream_mode_auto()
        else:
            client.set_dream_mode(int(mode))
    except ValueError:
        typer.echo(f"Error: dream mode must be a number or 'auto', got '{mode}'", err=True)
        raise typer.Exit(code=1) from None
    except Sp108eError as exc:
        raise _fail(exc) from None
    typer.echo(f"Dream mode set to {mode}")


@app.command("configure")
def configure(ctx: typer.Context) -> None:
    """Write chip type, color order and segment layout from the config file."""
    if ctx.obj.host:
        typer.echo("Error: configure reads the layout from the config file; use --device instead of --host", err=True)
        raise typer.Exit(code=1)
    try:
        config = _resolve_config(ctx.obj)
        engine = SyncEngine(_client_for(config))
        written = engine.apply_config(config)
        if engine.last_error is not None:
            raise engine.last_error
    except Sp108eError as exc:
        raise _fail(exc) from None

    if not written:
        typer.echo(f"{config.name}: nothing to change")
        return
    typer.echo(f"{config.name}: updated {', '.join(written)}")


@app.command("watch")
def watch(
    ctx: typer.Context,
    interval: float = typer.Option(1.0, "--interval", help="Poll interval in seconds"),
    count: int = typer.Option(0, "--count", help="Stop after this many polls (0 = until interrupted)"),
) -> None:
    """Poll the controller and print each status update."""
    try:
        engine = SyncEngine(_build_client(ctx), poll_interval_s=interval)
    except Sp108eError as exc:
        raise _fail(exc) from None

    done = threading.Event()
    seen = 0

    def _print(status: DeviceStatus) -> None:
        nonlocal seen
        seen += 1
        typer.echo(" | ".join(_format_status(status)[:6]))
        if count and seen >= count:
            done.set()

    remove = engine.add_listener(_print)
    engine.start_polling()
    try:
        done.wait()
    except KeyboardInterrupt:
        pass
    finally:
        engine.stop_polling()
        remove()


def run() -> None:
    app()


if __name__ == "__main__":
    run()
