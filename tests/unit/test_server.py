"""Tests for the preview server lifecycle.

A sleeping Python process plays the preview server, and readiness probing
is replaced by a callable, so no Node toolchain or bound port is needed.
"""

from __future__ import annotations

import contextlib
import os
import socket
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

from storygate import server as server_module
from storygate.config import Settings
from storygate.errors import ServerError, ServerLaunchError, StartupTimeoutError
from storygate.server import PreviewServer, ServerHandle, port_in_use

SLEEPER = (sys.executable, "-c", "import time; time.sleep(60)")

posix_only = pytest.mark.skipif(os.name == "nt", reason="process groups are POSIX-specific")


@contextlib.contextmanager
def listening_socket() -> Iterator[int]:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.bind(("127.0.0.1", 0))
        sock.listen(1)
        yield sock.getsockname()[1]
    finally:
        sock.close()


def _settings(**overrides: object) -> Settings:
    values: dict[str, object] = {
        "server_command": SLEEPER,
        "poll_interval": 0.0,
        "startup_attempts": 3,
    }
    values.update(overrides)
    return Settings(**values)  # type: ignore[arg-type]


def _no_sleep(_seconds: float) -> None:
    pass


class TestPortInUse:
    """Tests for port_in_use()."""

    @pytest.mark.unit
    def test_listening_port_is_in_use(self) -> None:
        with listening_socket() as port:
            assert port_in_use(port, host="127.0.0.1") is True

    @pytest.mark.unit
    def test_closed_port_is_free(self) -> None:
        with listening_socket() as port:
            pass
        assert port_in_use(port, host="127.0.0.1") is False


class TestPreviewServer:
    """Tests for PreviewServer."""

    @pytest.mark.integration
    @posix_only
    def test_start_and_stop(self, tmp_path: Path) -> None:
        server = PreviewServer(tmp_path, _settings(), probe=lambda port: True, sleep=_no_sleep)

        handle = server.start()
        assert isinstance(handle, ServerHandle)
        assert handle.is_running
        assert handle.url == "http://127.0.0.1:6006"
        assert server.handle is handle

        server.stop()
        assert server.handle is None
        assert handle.process.poll() is not None

    @pytest.mark.integration
    @posix_only
    def test_start_is_idempotent(self, tmp_path: Path) -> None:
        server = PreviewServer(tmp_path, _settings(), probe=lambda port: True, sleep=_no_sleep)
        try:
            assert server.start() is server.start()
        finally:
            server.stop()

    @pytest.mark.unit
    def test_stop_without_start_is_noop(self, tmp_path: Path) -> None:
        server = PreviewServer(tmp_path, _settings())
        server.stop()
        server.stop()
        assert server.handle is None

    @pytest.mark.integration
    @posix_only
    def test_stop_twice_kills_once(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        terminated: list[int] = []
        original = PreviewServer._terminate

        def _recording(process):  # type: ignore[no-untyped-def]
            terminated.append(process.pid)
            original(process)

        monkeypatch.setattr(PreviewServer, "_terminate", staticmethod(_recording))
        server = PreviewServer(tmp_path, _settings(), probe=lambda port: True, sleep=_no_sleep)
        server.start()

        server.stop()
        server.stop()

        assert len(terminated) == 1

    @pytest.mark.integration
    @posix_only
    def test_startup_timeout_tears_down_process(self, tmp_path: Path) -> None:
        probes: list[int] = []
        seen: list[ServerHandle] = []
        server: PreviewServer

        def _probe(port: int) -> bool:
            probes.append(port)
            if server.handle is not None:
                seen.append(server.handle)
            return False

        server = PreviewServer(tmp_path, _settings(), probe=_probe, sleep=_no_sleep)

        with pytest.raises(StartupTimeoutError) as excinfo:
            server.start()

        assert probes == [6006, 6006, 6006]
        assert excinfo.value.code == "SGATE-SRV001"
        assert server.handle is None
        assert seen[0].process.poll() is not None

    @pytest.mark.integration
    @posix_only
    def test_running_kills_once_after_startup_timeout(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        terminated: list[int] = []
        original = PreviewServer._terminate

        def _recording(process):  # type: ignore[no-untyped-def]
            terminated.append(process.pid)
            original(process)

        monkeypatch.setattr(PreviewServer, "_terminate", staticmethod(_recording))
        server = PreviewServer(
            tmp_path, _settings(), probe=lambda port: False, sleep=_no_sleep
        )

        with pytest.raises(StartupTimeoutError), server.running():
            pytest.fail("body must not run")

        assert server.handle is None
        assert len(terminated) == 1

    @pytest.mark.integration
    @posix_only
    def test_running_stops_when_body_raises(self, tmp_path: Path) -> None:
        server = PreviewServer(tmp_path, _settings(), probe=lambda port: True, sleep=_no_sleep)

        with pytest.raises(RuntimeError), server.running() as handle:
            raise RuntimeError("tests crashed")

        assert server.handle is None
        assert handle.process.poll() is not None

    @pytest.mark.integration
    @posix_only
    def test_stop_during_startup_aborts_wait(self, tmp_path: Path) -> None:
        server: PreviewServer

        def _probe(port: int) -> bool:
            server.stop()
            return False

        server = PreviewServer(tmp_path, _settings(), probe=_probe, sleep=_no_sleep)

        with pytest.raises(ServerError, match="stopped during startup"):
            server.start()
        assert server.handle is None

    @pytest.mark.unit
    def test_missing_command_raises_launch_error(self, tmp_path: Path) -> None:
        server = PreviewServer(
            tmp_path,
            _settings(server_command=("storygate-test-definitely-missing-server",)),
            probe=lambda port: True,
        )

        with pytest.raises(ServerLaunchError):
            server.start()
        assert server.handle is None

    @pytest.mark.integration
    @posix_only
    def test_sigterm_ignoring_server_is_killed(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(server_module, "TERMINATE_GRACE_SECONDS", 0.5)
        stubborn = (
            sys.executable,
            "-c",
            "import signal, time; signal.signal(signal.SIGTERM, signal.SIG_IGN); time.sleep(60)",
        )
        server = PreviewServer(
            tmp_path,
            _settings(server_command=stubborn),
            probe=lambda port: True,
            sleep=_no_sleep,
        )
        handle = server.start()

        server.stop()

        assert handle.process.poll() is not None

    @pytest.mark.integration
    @posix_only
    def test_default_readiness_check_uses_configured_host(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        probed: list[tuple[int, str]] = []

        def _recording(port: int, host: str = "localhost", timeout: float = 0.5) -> bool:
            probed.append((port, host))
            return True

        monkeypatch.setattr(server_module, "port_in_use", _recording)
        server = PreviewServer(tmp_path, _settings(port=7100, host="10.0.0.5"), sleep=_no_sleep)
        try:
            handle = server.start()
            assert handle.url == "http://10.0.0.5:7100"
        finally:
            server.stop()

        assert probed == [(7100, "10.0.0.5")]

    @pytest.mark.integration
    @posix_only
    def test_custom_port_flows_into_handle(self, tmp_path: Path) -> None:
        settings = _settings(port=7100, host="localhost")
        server = PreviewServer(
            tmp_path, settings, probe=lambda port: port == 7100, sleep=_no_sleep
        )
        try:
            handle = server.start()
            assert handle.port == 7100
            assert handle.url == "http://localhost:7100"
        finally:
            server.stop()
