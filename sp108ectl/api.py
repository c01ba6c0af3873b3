"""Stable public API for building tooling on top of sp108ectl.

This module is the supported integration surface for third-party callers
such as home-automation bridges. Avoid importing from private/internal
modules unless intentionally depending on non-stable internals.
"""

from __future__ import annotations

import logging

from sp108ectl.core.client import DeviceClient
from sp108ectl.core.codec import hsv_to_rgb, rgb_to_hsv
from sp108ectl.core.config_loader import LoadedConfig, load_config, select_device
from sp108ectl.core.errors import (
    ConfigLoadError,
    ConfigValidationError,
    DeviceSelectionError,
    InvalidParameterError,
    MalformedResponseError,
    Sp108eError,
    StaleOrUnavailableError,
    TransportConnectError,
    TransportError,
    TransportTimeoutError,
    UnknownAnimationModeError,
    UnknownChipTypeError,
    UnknownColorOrderError,
)
from sp108ectl.core.model import DEFAULT_PORT, CachedStatus, DeviceConfig, DeviceStatus, Hsv
from sp108ectl.core.sync import DREAM_MODE_IDENTIFIER, SyncEngine
from sp108ectl.core.tables import (
    ANIMATION_MODE_STATIC,
    ANIMATION_MODES,
    CHIP_TYPES,
    COLOR_ORDERS,
    RGBW_CHIP_TYPES,
    WARM_WHITE,
)
from sp108ectl.transports.base import Transport

__all__ = [
    "Sp108eError",
    "ConfigLoadError",
    "ConfigValidationError",
    "DeviceSelectionError",
    "InvalidParameterError",
    "MalformedResponseError",
    "StaleOrUnavailableError",
    "TransportError",
    "TransportConnectError",
    "TransportTimeoutError",
    "UnknownAnimationModeError",
    "UnknownChipTypeError",
    "UnknownColorOrderError",
    "COMMUNICATION_ERRORS",
    "ANIMATION_MODE_STATIC",
    "ANIMATION_MODES",
    "CHIP_TYPES",
    "COLOR_ORDERS",
    "RGBW_CHIP_TYPES",
    "WARM_WHITE",
    "DREAM_MODE_IDENTIFIER",
    "CachedStatus",
    "DeviceConfig",
    "DeviceStatus",
    "Hsv",
    "LoadedConfig",
    "DeviceClient",
    "SyncEngine",
    "Session",
    "hsv_to_rgb",
    "rgb_to_hsv",
    "load_config",
    "select_device",
]

LOGGER = logging.getLogger(__name__)

# Errors an integration should surface as "device not responding".
COMMUNICATION_ERRORS = (StaleOrUnavailableError, TransportError)


class Session:
    """One controller session: a client plus the engine that keeps its state fresh.

    Built from a ``DeviceConfig`` the session writes any wiring settings that
    differ on ``start()`` before it begins polling. ``stop()`` ends polling;
    the session can be used as a context manager.
    """

    def __init__(
        self,
        config: DeviceConfig,
        *,
        transport: Transport | None = None,
        apply_config: bool = True,
    ) -> None:
        self.config = config
        self.client = DeviceClient(
            config.host,
            config.port,
            chip_type=config.chip,
            transport=transport,
            timeout_s=config.timeout_s,
        )
        self.engine = SyncEngine(self.client, poll_interval_s=config.poll_interval_s)
        self._apply_config = apply_config

    @classmethod
    def connect(
        cls,
        host: str,
        port: int = DEFAULT_PORT,
        *,
        chip: str | None = None,
        transport: Transport | None = None,
    ) -> Session:
        """Session for a bare host/port. Wiring settings are left untouched."""
        if chip is None:
            config = DeviceConfig(name=host, host=host, port=port)
        else:
            config = DeviceConfig(name=host, host=host, port=port, chip=chip)
        return cls(config, transport=transport, apply_config=False)

    def start(self) -> None:
        if self._apply_config:
            written = self.engine.apply_config(self.config)
            if written:
                LOGGER.info("Updated %s on %s", ", ".join(written), self.config.name)
        self.engine.start_polling()

    def stop(self) -> None:
        self.engine.stop_polling()

    def __enter__(self) -> Session:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
