"""Static lookup tables shared by the codec and the client.

The position of a name in CHIP_TYPES and COLOR_ORDERS is what the
controller stores and reports, so the order of these tuples is wire format.
"""

from __future__ import annotations

from sp108ectl.core.errors import (
    UnknownAnimationModeError,
    UnknownChipTypeError,
    UnknownColorOrderError,
)

CHIP_TYPES: tuple[str, ...] = (
    "SM16703",
    "TM1804",
    "UCS1903",
    "WS2811",
    "WS2801",
    "SK6812",
    "LPD6803",
    "LPD8806",
    "APA102",
    "APA105",
    "DMX512",
    "TM1914",
    "TM1913",
    "P9813",
    "INK1003",
    "P943S",
    "P9411",
    "P9413",
    "TX1812",
    "TX1813",
    "GS8206",
    "GS8208",
    "SK9822",
    "TM1814",
    "SK6812_RGBW",
    "P9414",
    "P9412",
)

RGBW_CHIP_TYPES: tuple[str, ...] = ("SK6812_RGBW",)

COLOR_ORDERS: tuple[str, ...] = (
    "RGB",
    "RBG",
    "GRB",
    "GBR",
    "BRG",
    "BGR",
)

ANIMATION_MODE_STATIC = 0xD3

ANIMATION_MODES: dict[int, str] = {
    0xCD: "METEOR",
    0xCE: "BREATHING",
    0xCF: "STACK",
    0xD0: "FLOW",
    0xD1: "WAVE",
    0xD2: "FLASH",
    ANIMATION_MODE_STATIC: "STATIC",
    0xD4: "CATCH_UP",
}

# Dream modes are numbered 1-180 by the vendor app and sent as 0-179.
DREAM_MODE_MIN = 1
DREAM_MODE_MAX = 180

WARM_WHITE = "ff6717"


def chip_type_index(chip_type: str) -> int:
    try:
        return CHIP_TYPES.index(chip_type)
    except ValueError:
        raise UnknownChipTypeError(
            f"Unknown chip type '{chip_type}'. Known: {', '.join(CHIP_TYPES)}"
        ) from None


def color_order_index(color_order: str) -> int:
    try:
        return COLOR_ORDERS.index(color_order)
    except ValueError:
        raise UnknownColorOrderError(
            f"Unknown color order '{color_order}'. Known: {', '.join(COLOR_ORDERS)}"
        ) from None


def animation_mode_name(code: int) -> str:
    return ANIMATION_MODES.get(code, "Unknown")


def animation_mode_code(mode: int | str) -> int:
    """Resolve an animation mode given as a code or a table name (case-insensitive)."""
    if isinstance(mode, int):
        if mode in ANIMATION_MODES:
            return mode
        raise UnknownAnimationModeError(f"Unknown animation mode code 0x{mode:02x}")

    wanted = mode.strip().upper().replace("-", "_")
    for code, name in ANIMATION_MODES.items():
        if name == wanted:
            return code
    known = ", ".join(sorted(ANIMATION_MODES.values()))
    raise UnknownAnimationModeError(f"Unknown animation mode '{mode}'. Known: {known}")
