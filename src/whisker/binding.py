"""Bind manager — claims a port for the preview server.

Tries the configured port first and, when it is taken, each following port
until one is free or the attempt cap is reached::

    idle --bind()--> binding(attempt 1) --ok--> bound
                        |
                        | address in use / permission denied
                        v
                     binding(attempt 2) ... binding(attempt N) --fail--> failed

The bound port is the return value of ``bind()``; it is fixed for the rest of
the process and is the port embedded in the preview page.  Other OS errors
(e.g. an address that does not exist on this host) cannot be fixed by moving
to the next port and fail immediately.
"""

from __future__ import annotations

import errno
import socket
import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING, NoReturn

from whisker._errors import BindError
from whisker.config import MAX_PORT

if TYPE_CHECKING:
    from whisker._types import BindPhase, BindProbe
    from whisker.observability.collector import StackCollector

DEFAULT_MAX_ATTEMPTS = 10

# Errors that mean "this port, not this host": try the next one.
_RETRYABLE_ERRNOS = frozenset({errno.EADDRINUSE, errno.EACCES})


@dataclass(frozen=True, slots=True)
class ListenAttempt:
    """One try at a port.

    Attributes:
        port: Port that was tried.
        attempt: 1-based attempt number.

    """

    port: int
    attempt: int


@dataclass(frozen=True, slots=True)
class BindResult:
    """Outcome of a successful ``bind()``.

    Attributes:
        host: Bind address.
        port: Effective port, possibly later than the requested one.
        requested_port: Port originally configured.
        attempts: Every attempt made, the last one being the success.

    """

    host: str
    port: int
    requested_port: int
    attempts: tuple[ListenAttempt, ...]

    @property
    def rebound(self) -> bool:
        """Whether the server ended up on a different port than requested."""
        return self.port != self.requested_port

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"


def probe_port(host: str, port: int) -> None:
    """Bind and listen on ``(host, port)``, then release it.

    Raises:
        OSError: If the port cannot be claimed.

    """
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    with socket.create_server((host, port), family=family):
        pass


def _describe(exc: OSError) -> str:
    if exc.errno == errno.EADDRINUSE:
        return "address in use"
    if exc.errno == errno.EACCES:
        return "permission denied"
    return exc.strerror or str(exc)


class BindManager:
    """Owns the listen lifecycle of the preview server.

    Args:
        host: Bind address.
        port: First port to try.
        max_attempts: Hard cap on the number of ports tried.
        probe: Callable that claims ``(host, port)`` or raises ``OSError``.
        collector: Optional collector for ``BindAttempted`` events.

    """

    def __init__(
        self,
        host: str,
        port: int,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        probe: BindProbe = probe_port,
        collector: StackCollector | None = None,
    ) -> None:
        self._host = host
        self._requested_port = port
        self._max_attempts = max_attempts
        self._probe = probe
        self._collector = collector
        self._phase: BindPhase = "idle"
        self._current: ListenAttempt | None = None
        self._attempts: list[ListenAttempt] = []
        self._result: BindResult | None = None

    @property
    def phase(self) -> BindPhase:
        """``"idle"``, ``"binding"``, ``"bound"`` or ``"failed"``."""
        return self._phase

    @property
    def current_attempt(self) -> ListenAttempt | None:
        """The attempt in progress (or the last one made)."""
        return self._current

    @property
    def attempts(self) -> tuple[ListenAttempt, ...]:
        return tuple(self._attempts)

    @property
    def result(self) -> BindResult | None:
        """The successful bind, once ``phase == "bound"``."""
        return self._result

    def bind(self) -> BindResult:
        """Claim the first free port starting at the requested one.

        Returns:
            The effective host and port.

        Raises:
            BindError: If every allowed attempt failed, or the failure cannot
                be fixed by trying another port.  No further attempts are made.

        """
        if self._phase == "bound" and self._result is not None:
            return self._result
        if self._phase != "idle":
            msg = f"BindManager already {self._phase}"
            raise BindError(msg, self.attempts)

        port = self._requested_port
        for number in range(1, self._max_attempts + 1):
            if port > MAX_PORT:
                break

            attempt = ListenAttempt(port=port, attempt=number)
            self._phase = "binding"
            self._current = attempt
            self._attempts.append(attempt)

            try:
                self._probe(self._host, port)
            except OSError as exc:
                reason = _describe(exc)
                self._record(attempt, succeeded=False, error=reason)
                if exc.errno not in _RETRYABLE_ERRNOS:
                    self._fail(f"Cannot listen on {self._host}:{port}: {reason}")
                if number < self._max_attempts and port < MAX_PORT:
                    print(
                        f"  Port {port} unavailable ({reason}), trying {port + 1}",
                        file=sys.stderr,
                    )
                else:
                    print(f"  Port {port} unavailable ({reason})", file=sys.stderr)
                port += 1
                continue

            self._record(attempt, succeeded=True)
            self._phase = "bound"
            self._result = BindResult(
                host=self._host,
                port=port,
                requested_port=self._requested_port,
                attempts=self.attempts,
            )
            return self._result

        last = self.current_attempt.port if self.current_attempt else self._requested_port
        self._fail(
            f"No free port on {self._host} in {self._requested_port}-{last} "
            f"after {len(self._attempts)} attempt{'s' if len(self._attempts) != 1 else ''}"
        )

    def _record(self, attempt: ListenAttempt, *, succeeded: bool, error: str = "") -> None:
        if self._collector is not None:
            self._collector.record_bind_attempt(
                self._host,
                attempt.port,
                attempt.attempt,
                succeeded=succeeded,
                error=error,
            )

    def _fail(self, message: str) -> NoReturn:
        self._phase = "failed"
        raise BindError(message, self.attempts)
