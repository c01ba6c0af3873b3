"""Encoding and decoding for the SP108E TCP protocol.

Every request is a fixed six byte frame::

    38 <param:3 bytes> <opcode> 83

The parameter is written as hex and right-padded with ``0`` to three bytes.
Only the status and toggle commands are answered, each with a 17 byte
status frame.
"""

from __future__ import annotations

import colorsys
import logging
import math
import re
from enum import Enum, IntEnum

from sp108ectl.core.errors import InvalidParameterError, MalformedResponseError
from sp108ectl.core.model import DeviceStatus, Hsv

CMD_PREFIX = 0x38
CMD_SUFFIX = 0x83
NO_PARAMETER = "000000"
STATUS_RESPONSE_LENGTH = 17

_PARAMETER_HEX_LEN = 6
_HEX_RE = re.compile(r"^[0-9a-f]*$")
_COLOR_RE = re.compile(r"^[0-9a-f]{6}$")
LOGGER = logging.getLogger(__name__)


class Opcode(IntEnum):
    GET_NAME = 0x77
    SET_CHIP_TYPE = 0x1C
    SET_COLOR_ORDER = 0x3C
    SET_SEGMENTS = 0x2E
    SET_LEDS_PER_SEGMENT = 0x2D
    GET_STATUS = 0x10
    TOGGLE = 0xAA
    SET_MODE = 0x2C
    SET_BRIGHTNESS = 0x2A
    SET_WHITE_BRIGHTNESS = 0x08
    SET_SPEED = 0x03
    SET_COLOR = 0x22
    SET_DREAM_MODE_AUTO = 0x06


class ModeKind(Enum):
    """What a SET_MODE (0x2c) frame means.

    The controller reuses one opcode for selecting a built-in animation and
    for selecting a dream mode; only the parameter encoding differs.
    """

    ANIMATION = "animation"
    DREAM = "dream"


def int_to_hex_byte(value: int) -> str:
    """Format a non-negative integer as lowercase hex, at least two digits.

    No clamping happens here; callers keep values in range.
    """
    if value < 0:
        raise InvalidParameterError(f"Cannot encode negative value {value} as hex")
    return f"{value:02x}"


def normalize_color(hex_color: str) -> str:
    normalized = hex_color.strip().lower().removeprefix("#")
    if not _COLOR_RE.match(normalized):
        raise InvalidParameterError(f"Color must be six hex digits (RRGGBB), got '{hex_color}'")
    return normalized


def encode_command(opcode: int, parameter: str = NO_PARAMETER) -> bytes:
    normalized = parameter.strip().lower()
    if len(normalized) > _PARAMETER_HEX_LEN:
        raise InvalidParameterError(
            f"Parameter '{parameter}' exceeds {_PARAMETER_HEX_LEN} hex characters"
        )
    if not _HEX_RE.match(normalized):
        raise InvalidParameterError(f"Parameter '{parameter}' must contain only [0-9a-f]")
    if not 0 <= opcode <= 0xFF:
        raise InvalidParameterError(f"Opcode {opcode} does not fit in one byte")

    padded = normalized.ljust(_PARAMETER_HEX_LEN, "0")
    return bytes((CMD_PREFIX,)) + bytes.fromhex(padded) + bytes((opcode, CMD_SUFFIX))


def encode_mode_command(kind: ModeKind, value: int) -> bytes:
    """Encode a SET_MODE frame.

    Animation modes are sent as their code. Dream modes are numbered from 1
    and sent as ``value - 1``.
    """
    if kind is ModeKind.DREAM:
        return encode_command(Opcode.SET_MODE, int_to_hex_byte(value - 1))
    return encode_command(Opcode.SET_MODE, int_to_hex_byte(value))


def decode_status(response: bytes) -> DeviceStatus:
    if len(response) != STATUS_RESPONSE_LENGTH:
        raise MalformedResponseError(
            f"Status response must be {STATUS_RESPONSE_LENGTH} bytes, got {len(response)}"
        )

    data = bytes(response)
    color = data[10:13].hex()
    status = DeviceStatus(
        raw_response=data.hex(),
        on=data[1] == 0x01,
        animation_mode=data[2],
        animation_speed=data[3],
        brightness=data[4],
        color_order=data[5],
        leds_per_segment=int.from_bytes(data[6:8], "big"),
        segments=int.from_bytes(data[8:10], "big"),
        color=color,
        hsv=rgb_to_hsv(color),
        chip_type=data[13],
        recorded_patterns=data[14],
        white_brightness=data[15],
    )
    LOGGER.debug("Decoded status %s -> %s", status.raw_response, status)
    return status


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def rgb_to_hsv(rgb_hex: str) -> Hsv:
    """Convert RRGGBB to hue 0-360, saturation 0-100, value 0-100 (rounded)."""
    rgb = bytes.fromhex(normalize_color(rgb_hex))
    h, s, v = colorsys.rgb_to_hsv(rgb[0] / 255, rgb[1] / 255, rgb[2] / 255)
    return Hsv(
        hue=_round_half_up(h * 360),
        saturation=_round_half_up(s * 100),
        value=_round_half_up(v * 100),
    )


def hsv_to_rgb(hue: float, saturation: float, value: float) -> str:
    """Convert hue 0-360, saturation 0-100, value 0-100 to RRGGBB."""
    if not 0 <= hue <= 360 or not 0 <= saturation <= 100 or not 0 <= value <= 100:
        raise InvalidParameterError(
            f"HSV out of range: hue={hue}, saturation={saturation}, value={value}"
        )
    r, g, b = colorsys.hsv_to_rgb((hue % 360) / 360, saturation / 100, value / 100)
    return bytes(_round_half_up(c * 255) for c in (r, g, b)).hex()
