"""Core data models used across codec, client, sync engine, and CLI."""

from __future__ import annotations

from dataclasses import dataclass

from sp108ectl.core.tables import animation_mode_name, chip_type_index, color_order_index

DEFAULT_PORT = 8189


def raw_to_percentage(raw: int) -> float:
    return raw / 255 * 100


@dataclass(frozen=True)
class Hsv:
    """Rounded to whole degrees and percent, as decoded from a status frame."""

    hue: int
    saturation: int
    value: int


@dataclass(frozen=True)
class DeviceStatus:
    """One decoded 17-byte status frame.

    Percentages are derived from the raw bytes and cannot be set on their own.
    """

    raw_response: str
    on: bool
    animation_mode: int
    animation_speed: int
    brightness: int
    color_order: int
    leds_per_segment: int
    segments: int
    color: str
    hsv: Hsv
    chip_type: int
    recorded_patterns: int
    white_brightness: int

    @property
    def animation_mode_name(self) -> str:
        return animation_mode_name(self.animation_mode)

    @property
    def animation_speed_percentage(self) -> float:
        return raw_to_percentage(self.animation_speed)

    @property
    def brightness_percentage(self) -> float:
        return raw_to_percentage(self.brightness)

    @property
    def white_brightness_percentage(self) -> float:
        return raw_to_percentage(self.white_brightness)


@dataclass(frozen=True)
class CachedStatus:
    status: DeviceStatus
    captured_at: float


@dataclass(frozen=True)
class PendingColorEdit:
    hue: float | None = None
    saturation: float | None = None

    @property
    def is_complete(self) -> bool:
        return self.hue is not None and self.saturation is not None


@dataclass(frozen=True)
class DeviceConfig:
    """Validated settings for one controller.

    Chip type and color order names are resolved against the lookup tables
    on construction so a bad name fails here rather than on the first write.
    """

    name: str
    host: str
    port: int = DEFAULT_PORT
    chip: str = "WS2811"
    color_order: str = "GRB"
    segments: int = 1
    leds_per_segment: int = 50
    poll_interval_s: float = 1.0
    timeout_s: float = 3.0

    def __post_init__(self) -> None:
        chip_type_index(self.chip)
        color_order_index(self.color_order)

    @property
    def chip_index(self) -> int:
        return chip_type_index(self.chip)

    @property
    def color_order_index(self) -> int:
        return color_order_index(self.color_order)
