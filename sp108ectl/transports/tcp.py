"""TCP transport implementation using Python sockets."""

from __future__ import annotations

import logging
import socket
import time

from sp108ectl.core.errors import TransportConnectError, TransportTimeoutError

LOGGER = logging.getLogger(__name__)

# The controller drops or garbles writes that arrive back to back.
WRITE_COOLDOWN_S = 0.25


class TCPTransport:
    """One connection per request; unanswered writes are followed by a cooldown."""

    def __init__(self, *, write_cooldown_s: float = WRITE_COOLDOWN_S) -> None:
        self.write_cooldown_s = write_cooldown_s

    def send(
        self,
        host: str,
        payload: bytes,
        *,
        port: int,
        response_length: int = 0,
        timeout_s: float = 3.0,
    ) -> bytes:
        try:
            sock = socket.create_connection((host, port), timeout=timeout_s)
        except TimeoutError as exc:
            raise TransportTimeoutError(f"TCP connect timed out for {host}:{port}") from exc
        except OSError as exc:
            raise TransportConnectError(f"TCP connect failed for {host}:{port}: {exc}") from exc

        try:
            try:
                sock.sendall(payload)
            except TimeoutError as exc:
                raise TransportTimeoutError(f"TCP send timed out for {host}:{port}") from exc
            except OSError as exc:
                raise TransportConnectError(f"TCP send failed for {host}:{port}: {exc}") from exc

            response = _recv_exactly(sock, response_length, host=host, port=port)
        finally:
            sock.close()

        LOGGER.debug("%s:%s sent=%s received=%s", host, port, payload.hex(), response.hex())
        if response_length == 0:
            time.sleep(self.write_cooldown_s)
        return response


def _recv_exactly(sock: socket.socket, length: int, *, host: str, port: int) -> bytes:
    chunks: list[bytes] = []
    received = 0
    while received < length:
        try:
            chunk = sock.recv(length - received)
        except TimeoutError as exc:
            raise TransportTimeoutError(
                f"TCP receive timed out for {host}:{port} after {received} of {length} bytes"
            ) from exc
        except OSError as exc:
            raise TransportConnectError(f"TCP receive failed for {host}:{port}: {exc}") from exc
        if not chunk:
            raise TransportConnectError(
                f"Connection to {host}:{port} closed after {received} of {length} bytes"
            )
        chunks.append(chunk)
        received += len(chunk)
    return b"".join(chunks)
