from __future__ import annotations

import threading
import time

import pytest

from sp108ectl.core.client import DeviceClient
from sp108ectl.core.codec import hsv_to_rgb
from sp108ectl.core.errors import StaleOrUnavailableError, TransportConnectError
from sp108ectl.core.model import DeviceConfig, PendingColorEdit
from sp108ectl.core.sync import DREAM_MODE_IDENTIFIER, SyncEngine


def status_frame(
    *,
    on: bool = True,
    mode: int = 0xD3,
    color: str = "ff6717",
    chip: int = 3,
    order: int = 2,
    leds: int = 60,
    segments: int = 1,
) -> bytes:
    return (
        bytes((0x38, 0x01 if on else 0x00, mode, 0x80, 0x80, order))
        + leds.to_bytes(2, "big")
        + segments.to_bytes(2, "big")
        + bytes.fromhex(color)
        + bytes((chip, 0x00, 0x10, 0x83))
    )


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class FakeTransport:
    def __init__(self, status: bytes | None = None) -> None:
        self.status = status if status is not None else status_frame()
        self.failures = 0
        self.calls: list[bytes] = []

    def send(self, host, payload, *, port, response_length=0, timeout_s=3.0) -> bytes:
        self.calls.append(payload)
        if self.failures:
            self.failures -= 1
            raise TransportConnectError("connection refused")
        return self.status if response_length else b""

    @property
    def opcodes(self) -> list[int]:
        return [p[4] for p in self.calls]


def _engine(transport: FakeTransport, clock: FakeClock | None = None) -> SyncEngine:
    client = DeviceClient("10.0.0.5", transport=transport)
    return SyncEngine(client, poll_interval_s=1.0, clock=clock or FakeClock())


def test_uninitialized_engine_is_stale() -> None:
    engine = _engine(FakeTransport())
    assert engine.is_stale
    with pytest.raises(StaleOrUnavailableError):
        engine.is_on


def test_fresh_read_does_not_touch_transport() -> None:
    clock = FakeClock()
    transport = FakeTransport()
    engine = _engine(transport, clock)
    assert engine.poll() is True
    calls = len(transport.calls)

    clock.now += 0.5
    assert not engine.is_stale
    assert engine.is_on is True
    assert engine.hue == 21
    assert engine.saturation == 91
    assert engine.brightness_percentage == pytest.approx(128 / 255 * 100)
    assert len(transport.calls) == calls


def test_read_after_poll_interval_is_stale() -> None:
    clock = FakeClock()
    engine = _engine(FakeTransport(), clock)
    engine.poll()

    clock.now += 1.5
    assert engine.is_stale
    with pytest.raises(StaleOrUnavailableError):
        engine.brightness_percentage


def test_failed_poll_keeps_last_snapshot() -> None:
    transport = FakeTransport()
    engine = _engine(transport)
    engine.poll()
    before = engine.cached

    transport.failures = 1
    assert engine.poll() is False
    assert engine.cached is before
    assert isinstance(engine.last_error, TransportConnectError)

    assert engine.poll() is True
    assert engine.last_error is None


def test_listeners_receive_polled_status() -> None:
    engine = _engine(FakeTransport())
    seen = []
    remove = engine.add_listener(seen.append)
    engine.poll()
    remove()
    engine.poll()
    assert len(seen) == 1
    assert seen[0].color == "ff6717"


def test_polling_thread_survives_errors_and_stops() -> None:
    transport = FakeTransport()
    transport.failures = 2
    client = DeviceClient("10.0.0.5", transport=transport)
    engine = SyncEngine(client, poll_interval_s=0.01)

    polled = threading.Event()
    engine.add_listener(lambda status: polled.set())
    engine.start_polling()
    try:
        assert polled.wait(5.0)
        assert engine.is_polling
    finally:
        engine.stop_polling(timeout_s=5.0)

    assert not engine.is_polling
    assert engine.cached is not None
    assert transport.opcodes.count(0x10) >= 3


def test_hue_alone_writes_nothing() -> None:
    transport = FakeTransport()
    engine = _engine(transport)
    engine.poll()
    calls = len(transport.calls)

    assert engine.set_hue(120) is None
    assert len(transport.calls) == calls
    assert engine.pending_color == PendingColorEdit(hue=120)


def test_hue_then_saturation_writes_one_color() -> None:
    transport = FakeTransport()
    engine = _engine(transport)
    engine.poll()

    engine.set_hue(120)
    color = engine.set_saturation(50)

    assert color == hsv_to_rgb(120, 50, 100)
    assert transport.opcodes.count(0x22) == 1
    assert transport.calls[-1].hex() == f"38{color}2283"
    assert engine.pending_color == PendingColorEdit()


def test_saturation_then_hue_writes_one_color() -> None:
    transport = FakeTransport()
    engine = _engine(transport)
    engine.poll()

    assert engine.set_saturation(50) is None
    color = engine.set_hue(240)

    assert color == hsv_to_rgb(240, 50, 100)
    assert transport.opcodes.count(0x22) == 1


def test_color_pair_without_any_status_is_unavailable() -> None:
    transport = FakeTransport()
    engine = _engine(transport)
    engine.set_hue(10)
    with pytest.raises(StaleOrUnavailableError):
        engine.set_saturation(20)
    assert transport.calls == []


def test_set_on_skips_when_fresh_state_matches() -> None:
    transport = FakeTransport(status_frame(on=True))
    engine = _engine(transport)
    engine.poll()
    calls = len(transport.calls)

    engine.set_on(True)
    assert len(transport.calls) == calls

    engine.set_on(False)
    assert transport.opcodes[calls:] == [0x10, 0xAA]


def test_animation_off_when_static_and_flag_off_is_noop() -> None:
    transport = FakeTransport(status_frame(mode=0xD3))
    engine = _engine(transport)
    engine.poll()
    calls = len(transport.calls)

    assert engine.set_animation_on(False) is False
    assert len(transport.calls) == calls


def test_animation_on_sends_dream_auto_and_sets_flag() -> None:
    transport = FakeTransport(status_frame(mode=0xD3))
    engine = _engine(transport)
    engine.poll()

    assert engine.set_animation_on(True) is True
    assert transport.opcodes[-1] == 0x06
    assert engine.animation_on is True


def test_animation_on_is_noop_when_flag_and_device_agree() -> None:
    transport = FakeTransport(status_frame(mode=0x05))
    engine = _engine(transport)
    engine.poll()
    engine.set_animation_on(True)
    calls = len(transport.calls)

    assert engine.set_animation_on(True) is False
    assert len(transport.calls) == calls


def test_animation_request_goes_through_on_out_of_band_change() -> None:
    transport = FakeTransport(status_frame(mode=0x05))
    engine = _engine(transport)
    engine.poll()
    engine.set_animation_on(True)

    # someone switched the strip back to static from the vendor app
    transport.status = status_frame(mode=0xD3)
    engine.poll()
    assert engine.set_animation_on(True) is True

    transport.status = status_frame(mode=0x05)
    engine.poll()
    assert engine.set_animation_on(False) is True
    assert transport.calls[-1].hex() == "38d300002c83"
    assert engine.animation_on is False


def test_animation_toggle_requires_a_snapshot() -> None:
    engine = _engine(FakeTransport())
    with pytest.raises(StaleOrUnavailableError):
        engine.set_animation_on(True)


def test_animation_mode_identifier() -> None:
    transport = FakeTransport(status_frame(mode=0xCD))
    engine = _engine(transport)
    engine.poll()
    assert engine.animation_mode == 0xCD
    assert engine.animation_mode_on is True

    transport.status = status_frame(mode=0x42)
    engine.poll()
    assert engine.animation_mode == DREAM_MODE_IDENTIFIER

    transport.status = status_frame(mode=0xD3)
    engine.poll()
    assert engine.animation_mode_on is False


def test_set_animation_mode_falls_back_to_dream_auto() -> None:
    transport = FakeTransport()
    engine = _engine(transport)
    engine.set_animation_mode(0xCE)
    engine.set_animation_mode(DREAM_MODE_IDENTIFIER)
    assert [p.hex() for p in transport.calls] == ["38ce00002c83", "380000000683"]


def test_apply_config_writes_only_differences() -> None:
    transport = FakeTransport(status_frame(chip=3, order=2, leds=60, segments=1))
    engine = _engine(transport)

    same = DeviceConfig(name="desk", host="10.0.0.5", chip="WS2811", color_order="GRB", segments=1, leds_per_segment=60)
    assert engine.apply_config(same) == ()
    assert transport.opcodes == [0x10]

    changed = DeviceConfig(name="desk", host="10.0.0.5", chip="SK6812", color_order="GRB", segments=2, leds_per_segment=60)
    assert engine.apply_config(changed) == ("chip", "segments")
    assert [p.hex() for p in transport.calls[2:]] == ["380500001c83", "380200002e83"]


def test_apply_config_without_status_writes_nothing() -> None:
    transport = FakeTransport()
    transport.failures = 1
    engine = _engine(transport)
    config = DeviceConfig(name="desk", host="10.0.0.5", chip="SK6812")
    assert engine.apply_config(config) == ()
    assert transport.opcodes == [0x10]


class SlowTransport(FakeTransport):
    """Advances the fake clock by the round trip and records staleness seen mid-request."""

    def __init__(self, clock: FakeClock, latency_s: float) -> None:
        super().__init__()
        self.clock = clock
        self.latency_s = latency_s
        self.engine: SyncEngine | None = None
        self.stale_during_request: list[bool] = []

    def send(self, host, payload, *, port, response_length=0, timeout_s=3.0) -> bytes:
        self.clock.now += self.latency_s
        if self.engine is not None:
            self.stale_during_request.append(self.engine.is_stale)
        return super().send(host, payload, port=port, response_length=response_length, timeout_s=timeout_s)


def test_snapshot_is_stamped_before_the_request() -> None:
    clock = FakeClock()
    transport = SlowTransport(clock, latency_s=0.4)
    engine = _engine(transport, clock)

    engine.poll()
    assert engine.cached.captured_at == 100.0
    assert clock.now == 100.4


def test_previous_snapshot_served_while_refresh_in_flight() -> None:
    clock = FakeClock()
    transport = SlowTransport(clock, latency_s=0.3)
    engine = _engine(transport, clock)
    engine.poll()
    transport.engine = engine

    # next poll starts on schedule, its answer arrives after the interval has run out
    clock.now = 101.0
    engine.poll()

    assert transport.stale_during_request == [False]
    assert engine.cached.captured_at == 101.0
    assert not engine.is_stale


def test_failed_refresh_does_not_extend_freshness() -> None:
    clock = FakeClock()
    transport = FakeTransport()
    engine = _engine(transport, clock)
    engine.poll()

    clock.now += 1.3
    transport.failures = 1
    assert engine.poll() is False
    assert engine.is_stale
    with pytest.raises(StaleOrUnavailableError):
        engine.hue


def test_polling_keeps_cache_fresh_with_slow_device() -> None:
    class DelayedTransport(FakeTransport):
        def send(self, host, payload, *, port, response_length=0, timeout_s=3.0) -> bytes:
            time.sleep(0.05)
            return super().send(host, payload, port=port, response_length=response_length, timeout_s=timeout_s)

    transport = DelayedTransport()
    client = DeviceClient("10.0.0.5", transport=transport)
    engine = SyncEngine(client, poll_interval_s=0.2)
    polled = threading.Event()
    engine.add_listener(lambda status: polled.set())

    engine.start_polling()
    try:
        assert polled.wait(5.0)
        samples = []
        deadline = time.monotonic() + 1.0
        while time.monotonic() < deadline:
            samples.append(engine.is_stale)
            time.sleep(0.002)
    finally:
        engine.stop_polling(timeout_s=5.0)

    assert samples
    assert samples.count(True) == 0
    assert transport.opcodes.count(0x10) >= 4
