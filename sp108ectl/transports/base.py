"""Transport interfaces."""

from __future__ import annotations

from typing import Protocol


class Transport(Protocol):
    def send(
        self,
        host: str,
        payload: bytes,
        *,
        port: int,
        response_length: int = 0,
        timeout_s: float = 3.0,
    ) -> bytes:
        """Send payload to a device and return exactly response_length bytes (empty when 0)."""
