"""Cached device state with periodic refresh.

The engine polls the controller on a background thread and answers reads
from the last snapshot. A snapshot older than the poll interval (plus one
transport timeout while its refresh is under way), or no snapshot at all,
is reported as StaleOrUnavailableError instead of being served.

It also arbitrates the two writes that depend on cached state: hue and
saturation arrive separately but the controller only takes a full RGB
value, and the animation on/off switch must not resend a mode the
controller is already in.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections.abc import Callable
from dataclasses import replace

from sp108ectl.core.client import DeviceClient
from sp108ectl.core.codec import hsv_to_rgb
from sp108ectl.core.errors import InvalidParameterError, Sp108eError, StaleOrUnavailableError
from sp108ectl.core.model import CachedStatus, DeviceConfig, DeviceStatus, PendingColorEdit
from sp108ectl.core.tables import ANIMATION_MODE_STATIC, ANIMATION_MODES

LOGGER = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_S = 1.0

# Identifier reported for any mode outside the animation table.
DREAM_MODE_IDENTIFIER = 1

StatusListener = Callable[[DeviceStatus], None]


class SyncEngine:
    def __init__(
        self,
        client: DeviceClient,
        *,
        poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if poll_interval_s <= 0:
            raise InvalidParameterError(f"poll_interval_s must be positive, got {poll_interval_s}")
        self.client = client
        self.poll_interval_s = poll_interval_s
        self._clock = clock
        self._lock = threading.Lock()
        self._cached: CachedStatus | None = None
        self._pending = PendingColorEdit()
        self._animation_on = False
        self._listeners: list[StatusListener] = []
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._in_flight = 0
        self.last_error: Sp108eError | None = None

    # Polling

    def poll(self) -> bool:
        """Fetch status once. Failures keep the previous snapshot and return False.

        The snapshot is stamped with the time the request was issued, so its
        age never includes the round trip. An older request finishing late
        does not replace a newer snapshot.
        """
        started_at = self._clock()
        with self._lock:
            self._in_flight += 1

        status: DeviceStatus | None = None
        try:
            status = self.client.get_status()
        except Sp108eError as exc:
            LOGGER.warning("Status poll of %s:%s failed: %s", self.client.host, self.client.port, exc)
            self.last_error = exc
        finally:
            with self._lock:
                self._in_flight -= 1
                if status is not None and (self._cached is None or started_at >= self._cached.captured_at):
                    self._cached = CachedStatus(status=status, captured_at=started_at)
                listeners = list(self._listeners)

        if status is None:
            return False
        self.last_error = None

        for listener in listeners:
            try:
                listener(status)
            except Exception:
                LOGGER.exception("Status listener %r failed", listener)
        return True

    def start_polling(self, poll_interval_s: float | None = None) -> None:
        if poll_interval_s is not None:
            if poll_interval_s <= 0:
                raise InvalidParameterError(f"poll_interval_s must be positive, got {poll_interval_s}")
            self.poll_interval_s = poll_interval_s
        if self.is_polling:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name=f"sp108e-poll-{self.client.host}:{self.client.port}",
            daemon=True,
        )
        self._thread.start()

    def stop_polling(self, timeout_s: float | None = None) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout_s)
        self._thread = None

    @property
    def is_polling(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        # Fixed rate: request latency does not push later polls back.
        next_deadline = self._clock()
        while not self._stop_event.is_set():
            try:
                self.poll()
            except Exception:
                LOGGER.exception("Unexpected error while polling %s:%s", self.client.host, self.client.port)
            next_deadline += self.poll_interval_s
            now = self._clock()
            if next_deadline < now:
                next_deadline = now
            self._stop_event.wait(next_deadline - now)

    def add_listener(self, listener: StatusListener) -> Callable[[], None]:
        """Call listener with every freshly polled status. Returns an unsubscribe function."""
        with self._lock:
            self._listeners.append(listener)

        def _remove() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _remove

    # Cached reads

    @property
    def cached(self) -> CachedStatus | None:
        return self._cached

    def _freshness(self, cached: CachedStatus | None) -> tuple[bool, float]:
        """Return (fresh, age) for a snapshot.

        A snapshot is fresh for one poll interval. While its refresh is under
        way (a request in flight, or the polling loop running with its last
        poll successful) it stays usable for one more transport timeout, so
        the round trip of the next poll does not show up as a stale window.
        """
        if cached is None:
            return False, math.inf
        age = self._clock() - cached.captured_at
        if age <= self.poll_interval_s:
            return True, age
        refreshing = self._in_flight > 0 or (self.is_polling and self.last_error is None)
        return refreshing and age <= self.poll_interval_s + self.client.timeout_s, age

    @property
    def is_stale(self) -> bool:
        fresh, _ = self._freshness(self._cached)
        return not fresh

    @property
    def status(self) -> DeviceStatus:
        cached = self._cached
        fresh, age = self._freshness(cached)
        if cached is None:
            raise StaleOrUnavailableError(
                f"No status has been read from {self.client.host}:{self.client.port} yet"
            )
        if not fresh:
            raise StaleOrUnavailableError(
                f"Status of {self.client.host}:{self.client.port} is {age:.1f}s old "
                f"(poll interval {self.poll_interval_s:.1f}s)"
            )
        return cached.status

    def _last_known(self) -> DeviceStatus:
        cached = self._cached
        if cached is None:
            raise StaleOrUnavailableError(
                f"No status has been read from {self.client.host}:{self.client.port} yet"
            )
        return cached.status

    @property
    def is_on(self) -> bool:
        return self.status.on

    @property
    def brightness_percentage(self) -> float:
        return self.status.brightness_percentage

    @property
    def white_brightness_percentage(self) -> float:
        return self.status.white_brightness_percentage

    @property
    def hue(self) -> int:
        return self.status.hsv.hue

    @property
    def saturation(self) -> int:
        return self.status.hsv.saturation

    @property
    def animation_speed_percentage(self) -> float:
        return self.status.animation_speed_percentage

    @property
    def animation_mode_on(self) -> bool:
        return self.status.animation_mode != ANIMATION_MODE_STATIC

    @property
    def animation_mode(self) -> int:
        mode = self.status.animation_mode
        return mode if mode in ANIMATION_MODES else DREAM_MODE_IDENTIFIER

    # Writes that depend on cached state

    def set_on(self, value: bool) -> None:
        cached = self._cached
        if cached is not None and not self.is_stale and cached.status.on == bool(value):
            LOGGER.debug("%s:%s already %s", self.client.host, self.client.port, "on" if value else "off")
            return
        if value:
            self.client.on()
        else:
            self.client.off()

    def set_hue(self, hue: float) -> str | None:
        """Record hue; writes a color only once saturation is also pending."""
        if not 0 <= hue <= 360:
            raise InvalidParameterError(f"hue must be between 0 and 360, got {hue}")
        return self._update_pending(hue=hue)

    def set_saturation(self, saturation: float) -> str | None:
        """Record saturation; writes a color only once hue is also pending."""
        if not 0 <= saturation <= 100:
            raise InvalidParameterError(f"saturation must be between 0 and 100, got {saturation}")
        return self._update_pending(saturation=saturation)

    @property
    def pending_color(self) -> PendingColorEdit:
        return self._pending

    def _update_pending(self, **changes: float) -> str | None:
        with self._lock:
            pending = replace(self._pending, **changes)
            self._pending = pending
            if not pending.is_complete:
                return None
            status = self._last_known()
            self._pending = PendingColorEdit()

        color = hsv_to_rgb(pending.hue, pending.saturation, status.hsv.value)
        LOGGER.debug(
            "%s:%s hue=%s saturation=%s value=%s -> %s",
            self.client.host,
            self.client.port,
            pending.hue,
            pending.saturation,
            status.hsv.value,
            color,
        )
        self.client.set_color(color)
        return color

    def set_animation_on(self, value: bool) -> bool:
        """Switch between dream-mode auto and static color. Returns True if a command was sent.

        The request is skipped only when both the local flag and the last known
        device mode already agree with it.
        """
        value = bool(value)
        is_static = self._last_known().animation_mode == ANIMATION_MODE_STATIC
        with self._lock:
            animation_on = self._animation_on
        if value and not is_static and animation_on:
            return False
        if not value and is_static and not animation_on:
            return False

        if value:
            self.client.set_dream_mode_auto()
        else:
            self.client.set_animation_mode(ANIMATION_MODE_STATIC)
        with self._lock:
            self._animation_on = value
        return True

    @property
    def animation_on(self) -> bool:
        return self._animation_on

    def set_animation_mode(self, identifier: int) -> None:
        if identifier in ANIMATION_MODES:
            self.client.set_animation_mode(identifier)
        else:
            self.client.set_dream_mode_auto()

    # Configuration

    def apply_config(self, config: DeviceConfig) -> tuple[str, ...]:
        """Write configured wiring settings that differ from the device. Returns written field names."""
        if not self.poll():
            LOGGER.error("Unable to read status of %s:%s to apply configuration", config.host, config.port)
            return ()

        status = self._last_known()
        written: list[str] = []
        if status.chip_type != config.chip_index:
            LOGGER.info("Setting chip type of %s -> %s", config.name, config.chip)
            self.client.set_chip_type(config.chip)
            written.append("chip")
        if status.color_order != config.color_order_index:
            LOGGER.info("Setting color order of %s -> %s", config.name, config.color_order)
            self.client.set_color_order(config.color_order)
            written.append("color_order")
        if status.segments != config.segments:
            LOGGER.info("Setting segments of %s -> %s", config.name, config.segments)
            self.client.set_segments(config.segments)
            written.append("segments")
        if status.leds_per_segment != config.leds_per_segment:
            LOGGER.info("Setting LEDs per segment of %s -> %s", config.name, config.leds_per_segment)
            self.client.set_leds_per_segment(config.leds_per_segment)
            written.append("leds_per_segment")
        return tuple(written)
