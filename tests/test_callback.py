"""Tests for the local OAuth callback listener and single-slot delivery."""

import socket
import time
from concurrent.futures import Future
from threading import Event

import pytest
import requests

from auth.callback import CallbackListener
from auth.errors import ListenerError
from auth.signals import deliver, first_of


def _port_is_free(port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            s.bind(("127.0.0.1", port))
        except OSError:
            return False
    return True


# ---------------------------------------------------------------------------
# signals.py
# ---------------------------------------------------------------------------


class TestDeliver:
    def test_first_delivery_wins(self) -> None:
        slot: Future = Future()
        assert deliver(slot, "first") is True
        assert deliver(slot, "second") is False
        assert slot.result() == "first"

    def test_first_of_returns_completed_slot(self) -> None:
        a: Future = Future()
        b: Future = Future()
        winner = first_of(a, b)
        deliver(b, "from b")
        deliver(a, "from a")
        assert winner.result(timeout=1) is b

    def test_first_of_with_already_completed_slot(self) -> None:
        a: Future = Future()
        deliver(a, "early")
        winner = first_of(a, Future())
        assert winner.result(timeout=1) is a


# ---------------------------------------------------------------------------
# callback.py
# ---------------------------------------------------------------------------


class TestCallbackListener:
    @pytest.fixture
    def listener(self):
        listener = CallbackListener(port=0)
        listener.start()
        yield listener
        listener.stop(grace=1.0)

    def test_redirect_uri_uses_bound_port(self, listener) -> None:
        assert listener.port != 0
        assert listener.redirect_uri == f"http://localhost:{listener.port}/callback"

    def test_code_delivered(self, listener) -> None:
        resp = requests.get(
            f"http://127.0.0.1:{listener.port}/callback", params={"code": "abc123"}, timeout=5
        )
        assert resp.status_code == 200
        assert "text/html" in resp.headers["Content-Type"]
        assert "Authentication successful!" in resp.text
        assert listener.code.result(timeout=1) == "abc123"
        assert not listener.error.done()

    def test_missing_code_is_client_error(self, listener) -> None:
        resp = requests.get(f"http://127.0.0.1:{listener.port}/callback", timeout=5)
        assert resp.status_code == 400
        assert resp.text == "No code provided"
        assert "text/plain" in resp.headers["Content-Type"]

        error = listener.error.result(timeout=1)
        assert isinstance(error, ListenerError)
        assert not listener.code.done()

    def test_provider_error_is_reported(self, listener) -> None:
        requests.get(
            f"http://127.0.0.1:{listener.port}/callback",
            params={"error": "access_denied"},
            timeout=5,
        )
        assert "access_denied" in str(listener.error.result(timeout=1))

    def test_duplicate_callback_keeps_first_code(self, listener) -> None:
        url = f"http://127.0.0.1:{listener.port}/callback"
        first = requests.get(url, params={"code": "first"}, timeout=5)
        second = requests.get(url, params={"code": "second"}, timeout=5)

        assert first.status_code == 200
        assert second.status_code == 200
        assert listener.code.result(timeout=1) == "first"

    def test_unknown_path_not_found(self, listener) -> None:
        resp = requests.get(f"http://127.0.0.1:{listener.port}/other", timeout=5)
        assert resp.status_code == 404

    def test_stop_releases_port(self) -> None:
        listener = CallbackListener(port=0)
        listener.start()
        port = listener.port
        requests.get(f"http://127.0.0.1:{port}/callback", params={"code": "x"}, timeout=5)

        listener.stop(grace=1.0)
        assert _port_is_free(port)

        again = CallbackListener(port=port)
        again.start()
        again.stop(grace=1.0)

    def test_stop_twice_is_harmless(self) -> None:
        listener = CallbackListener(port=0)
        listener.start()
        listener.stop(grace=1.0)
        listener.stop(grace=1.0)
        assert not listener.running

    def test_port_in_use_is_listener_error(self) -> None:
        first = CallbackListener(port=0)
        first.start()
        try:
            with pytest.raises(ListenerError):
                CallbackListener(port=first.port).start()
        finally:
            first.stop(grace=1.0)

    def test_stop_force_closes_when_shutdown_overruns(self) -> None:
        listener = CallbackListener(port=0)
        listener.start()
        port = listener.port
        server = listener._server
        release = Event()
        real_shutdown = server.shutdown

        def stuck_shutdown() -> None:
            release.wait(5)
            real_shutdown()

        server.shutdown = stuck_shutdown
        try:
            started = time.monotonic()
            listener.stop(grace=0.3)
            elapsed = time.monotonic() - started

            assert elapsed < 1.5
            assert not listener.running
            assert _port_is_free(port)

            again = CallbackListener(port=port)
            again.start()
            again.stop(grace=1.0)
        finally:
            release.set()
