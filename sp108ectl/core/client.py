"""Typed operations on one SP108E controller."""

from __future__ import annotations

import logging
import math

from sp108ectl.core.codec import (
    NO_PARAMETER,
    STATUS_RESPONSE_LENGTH,
    ModeKind,
    Opcode,
    decode_status,
    encode_command,
    encode_mode_command,
    int_to_hex_byte,
    normalize_color,
)
from sp108ectl.core.errors import InvalidParameterError
from sp108ectl.core.model import DEFAULT_PORT, DeviceStatus
from sp108ectl.core.tables import (
    ANIMATION_MODE_STATIC,
    DREAM_MODE_MAX,
    DREAM_MODE_MIN,
    RGBW_CHIP_TYPES,
    animation_mode_code,
    chip_type_index,
    color_order_index,
)
from sp108ectl.transports.base import Transport
from sp108ectl.transports.tcp import TCPTransport

LOGGER = logging.getLogger(__name__)


def percentage_to_raw(percentage: float) -> int:
    """Scale 0-100 to 0-255, always rounding up."""
    _check_range("percentage", percentage, 0, 100)
    return math.ceil(percentage / 100 * 255)


def _check_range(name: str, value: float, low: float, high: float) -> None:
    if not low <= value <= high:
        raise InvalidParameterError(f"{name} must be between {low} and {high}, got {value}")


class DeviceClient:
    """Client for a single controller reachable at ``host:port``.

    Each operation opens its own connection through the transport. Writes
    that expect no answer pay the transport's cooldown before returning.
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        *,
        chip_type: str | None = None,
        transport: Transport | None = None,
        timeout_s: float = 3.0,
    ) -> None:
        if chip_type is not None:
            chip_type_index(chip_type)
        self.host = host
        self.port = port
        self.chip_type = chip_type
        self.timeout_s = timeout_s
        self.transport = transport or TCPTransport()

    @property
    def supports_white(self) -> bool:
        return self.chip_type in RGBW_CHIP_TYPES

    def _send(self, frame: bytes, response_length: int = 0) -> bytes:
        LOGGER.debug("%s:%s <- %s", self.host, self.port, frame.hex())
        return self.transport.send(
            self.host,
            frame,
            port=self.port,
            response_length=response_length,
            timeout_s=self.timeout_s,
        )

    def _command(self, opcode: Opcode, parameter: str = NO_PARAMETER, response_length: int = 0) -> bytes:
        return self._send(encode_command(opcode, parameter), response_length)

    def set_chip_type(self, chip_type: str) -> None:
        self._command(Opcode.SET_CHIP_TYPE, int_to_hex_byte(chip_type_index(chip_type)))

    def set_color_order(self, color_order: str) -> None:
        self._command(Opcode.SET_COLOR_ORDER, int_to_hex_byte(color_order_index(color_order)))

    def set_segments(self, segments: int) -> None:
        _check_range("segments", segments, 0, 0xFFFF)
        self._command(Opcode.SET_SEGMENTS, int_to_hex_byte(segments))

    def set_leds_per_segment(self, leds_per_segment: int) -> None:
        _check_range("leds_per_segment", leds_per_segment, 0, 0xFFFF)
        self._command(Opcode.SET_LEDS_PER_SEGMENT, int_to_hex_byte(leds_per_segment))

    def get_status(self) -> DeviceStatus:
        response = self._command(Opcode.GET_STATUS, response_length=STATUS_RESPONSE_LENGTH)
        return decode_status(response)

    def toggle_on_off(self) -> DeviceStatus:
        """Flip power; the controller answers with a status frame."""
        response = self._command(Opcode.TOGGLE, response_length=STATUS_RESPONSE_LENGTH)
        return decode_status(response)

    def on(self) -> DeviceStatus | None:
        if self.get_status().on:
            return None
        return self.toggle_on_off()

    def off(self) -> DeviceStatus | None:
        if not self.get_status().on:
            return None
        return self.toggle_on_off()

    def set_brightness(self, brightness: int) -> None:
        _check_range("brightness", brightness, 0, 255)
        self._command(Opcode.SET_BRIGHTNESS, int_to_hex_byte(brightness))

    def set_brightness_percentage(self, percentage: float) -> None:
        self.set_brightness(percentage_to_raw(percentage))

    def set_white_brightness(self, brightness: int) -> None:
        # The white channel has no off state of its own on this path.
        if brightness < 1:
            brightness = 1
        _check_range("white brightness", brightness, 1, 255)
        self._command(Opcode.SET_WHITE_BRIGHTNESS, int_to_hex_byte(brightness))

    def set_white_brightness_percentage(self, percentage: float) -> None:
        self.set_white_brightness(percentage_to_raw(percentage))

    def set_color(self, hex_color: str) -> None:
        """Write a static RRGGBB color.

        Mode 0 shows no static color, so the controller is switched to the
        static animation first. The two writes are not atomic.
        """
        color = normalize_color(hex_color)
        if self.get_status().animation_mode == 0:
            LOGGER.debug("%s:%s switching to static mode before color write", self.host, self.port)
            self.set_animation_mode(ANIMATION_MODE_STATIC)
        self._command(Opcode.SET_COLOR, color)

    def set_animation_mode(self, mode: int | str) -> None:
        self._send(encode_mode_command(ModeKind.ANIMATION, animation_mode_code(mode)))

    def set_animation_speed(self, speed: int) -> None:
        _check_range("speed", speed, 0, 255)
        self._command(Opcode.SET_SPEED, int_to_hex_byte(speed))

    def set_animation_speed_percentage(self, percentage: float) -> None:
        self.set_animation_speed(percentage_to_raw(percentage))

    def set_dream_mode(self, mode: int) -> None:
        clamped = max(DREAM_MODE_MIN, min(mode, DREAM_MODE_MAX))
        self._send(encode_mode_command(ModeKind.DREAM, clamped))

    def set_dream_mode_auto(self) -> None:
        self._command(Opcode.SET_DREAM_MODE_AUTO)
