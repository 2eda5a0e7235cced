"""Lifecycle of the Storybook preview server used by the live tests.

The live tests need a running preview server. PreviewServer spawns it
detached in its own process group, waits until its port accepts TCP
connections and tears the whole group down afterwards. The tracked process
is the only shared mutable resource of a validation run, so all state
changes go through one lock and stop() kills at most once.

Usage:
    server = PreviewServer(project_root, settings)
    with server.running() as handle:
        run_tests(handle.url)
"""

from __future__ import annotations

import contextlib
import logging
import os
import signal
import socket
import subprocess
import threading
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path

from storygate.config import Settings
from storygate.errors import ServerError, ServerLaunchError, StartupTimeoutError

logger = logging.getLogger(__name__)

# Seconds to wait for the process group to exit after SIGTERM before SIGKILL
TERMINATE_GRACE_SECONDS = 5.0

ProbeFn = Callable[[int], bool]


def port_in_use(port: int, host: str = "localhost", timeout: float = 0.5) -> bool:
    """Check whether something is listening on a local TCP port.

    Tries every address the host resolves to (IPv4 and IPv6 loopback for
    "localhost"). An accepted TCP connection means the port is bound; no
    application protocol is spoken.

    Args:
        port: Port number to probe.
        host: Host name or address to probe.
        timeout: Connect timeout per address, in seconds.

    Returns:
        True if any address accepted a connection.
    """
    try:
        addresses = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    except socket.gaierror:
        return False

    for family, socktype, proto, _, sockaddr in addresses:
        with contextlib.closing(socket.socket(family, socktype, proto)) as sock:
            sock.settimeout(timeout)
            try:
                sock.connect(sockaddr)
            except OSError:
                continue
            return True
    return False


@dataclass
class ServerHandle:
    """Ownership wrapper around the spawned preview server process.

    Attributes:
        process: The spawned process (leader of its own process group).
        port: Port the server binds.
        url: Base URL of the server.
    """

    process: subprocess.Popen[bytes]
    port: int
    url: str

    @property
    def pid(self) -> int:
        """Process id of the spawned server command."""
        return self.process.pid

    @property
    def is_running(self) -> bool:
        """True while the spawned command has not exited."""
        return self.process.poll() is None


class PreviewServer:
    """Starts, probes and stops the Storybook preview server.

    start() and stop() are idempotent. Use running() to get a scoped server
    that is stopped on every exit path.
    """

    def __init__(
        self,
        project_root: Path,
        settings: Settings | None = None,
        *,
        probe: ProbeFn | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.project_root = project_root
        self.settings = settings or Settings()
        self._probe = probe or (lambda port: port_in_use(port, host=self.settings.host))
        self._sleep = sleep
        # Reentrant: a signal handler may call stop() on the thread already in it
        self._lock = threading.RLock()
        self._handle: ServerHandle | None = None

    @property
    def handle(self) -> ServerHandle | None:
        """The tracked server, or None when no server is running."""
        return self._handle

    def start(self) -> ServerHandle:
        """Start the preview server and wait until its port is bound.

        If a server is already tracked it is returned unchanged. On a startup
        timeout the spawned process is stopped before the error propagates.

        Returns:
            Handle of the ready server.

        Raises:
            ServerLaunchError: If the server command cannot be spawned.
            StartupTimeoutError: If the port is still unbound after the
                attempt budget.
            ServerError: If stop() was called while waiting for readiness.
        """
        with self._lock:
            if self._handle is not None:
                return self._handle
            handle = self._spawn()
            self._handle = handle

        try:
            self._wait_until_ready(handle)
        except StartupTimeoutError:
            self.stop()
            raise
        return handle

    def stop(self) -> None:
        """Stop the tracked server and its children. Safe to call repeatedly.

        Termination problems are logged and swallowed: the process may already
        be gone. The handle is always cleared.
        """
        with self._lock:
            handle = self._handle
            self._handle = None
        if handle is None:
            return

        logger.info("Stopping Storybook (pid %d)", handle.pid)
        self._terminate(handle.process)
        logger.debug("Storybook stopped")

    @contextlib.contextmanager
    def running(self) -> Iterator[ServerHandle]:
        """Start the server for the duration of a with-block.

        The server is stopped when the block exits, whether it completes,
        raises, or start() itself failed.
        """
        try:
            yield self.start()
        finally:
            self.stop()

    def _spawn(self) -> ServerHandle:
        command = list(self.settings.server_command)
        logger.info("Starting Storybook: %s", " ".join(command))

        popen_kwargs: dict[str, object] = {}
        if os.name == "nt":
            popen_kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            popen_kwargs["start_new_session"] = True

        try:
            process = subprocess.Popen(  # noqa: S603
                command,
                cwd=self.project_root,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                **popen_kwargs,  # type: ignore[arg-type]
            )
        except OSError as e:
            raise ServerLaunchError(command, e) from e

        return ServerHandle(process=process, port=self.settings.port, url=self.settings.server_url)

    def _wait_until_ready(self, handle: ServerHandle) -> None:
        attempts = self.settings.startup_attempts
        interval = self.settings.poll_interval

        for attempt in range(1, attempts + 1):
            if self._handle is not handle:
                raise ServerError("Preview server was stopped during startup", port=handle.port)
            if self._probe(handle.port):
                logger.info("Storybook is ready on port %d", handle.port)
                return
            self._sleep(interval)
            if attempt % 5 == 0:
                logger.info("Waiting for Storybook... (%d/%d)", attempt, attempts)

        raise StartupTimeoutError(handle.port, attempts, interval)

    @staticmethod
    def _terminate(process: subprocess.Popen[bytes]) -> None:
        # The command (npm) exits before its children, so the group is always
        # signalled even when the leader is already gone.
        try:
            if os.name == "nt":
                subprocess.run(  # noqa: S603, S607
                    ["taskkill", "/F", "/T", "/PID", str(process.pid)],
                    capture_output=True,
                    check=False,
                    timeout=TERMINATE_GRACE_SECONDS,
                )
            else:
                os.killpg(process.pid, signal.SIGTERM)
        except (OSError, subprocess.SubprocessError):
            logger.debug("Could not signal preview server %d", process.pid, exc_info=True)

        try:
            process.wait(timeout=TERMINATE_GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            logger.warning("Storybook ignored SIGTERM, killing pid %d", process.pid)
            try:
                if os.name == "nt":
                    process.kill()
                else:
                    os.killpg(process.pid, signal.SIGKILL)
                process.wait(timeout=TERMINATE_GRACE_SECONDS)
            except (OSError, subprocess.SubprocessError):
                logger.debug("Could not kill preview server %d", process.pid, exc_info=True)
