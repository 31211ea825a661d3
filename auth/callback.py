"""Local OAuth callback listener.

A short-lived Flask app served by werkzeug on a loopback port. The
provider redirects the browser to ``/callback?code=...``; the first code
(or the first error) is handed to the coordinator through single-slot
futures. Late or duplicate callbacks are answered normally and dropped.
"""

import logging
import socket
from concurrent.futures import Future
from threading import Thread

from flask import Flask, Response, request
from werkzeug.serving import BaseWSGIServer, make_server

from auth.errors import ListenerError
from auth.signals import deliver

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/callback"

SUCCESS_PAGE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>Authentication Successful</title>
</head>
<body style="font-family: sans-serif; text-align: center; padding-top: 50px;">
<h1>Authentication successful!</h1>
<p>You can close this window and return to the terminal.</p>
</body>
</html>"""


class CallbackListener:
    """Captures one authorization code delivered by browser redirect."""

    def __init__(self, host: str = "127.0.0.1", port: int = 8089) -> None:
        """Initialize the listener without binding.

        Args:
            host: Loopback address to bind.
            port: Port to bind; 0 picks a free one (the bound port is in ``port`` after start).
        """
        self.host = host
        self.port = port
        self.code: Future = Future()
        self.error: Future = Future()
        self._server: BaseWSGIServer | None = None
        self._thread: Thread | None = None

        self.app = Flask(__name__)
        self.app.add_url_rule(CALLBACK_PATH, "callback", self._handle_callback)

    @property
    def redirect_uri(self) -> str:
        return f"http://localhost:{self.port}{CALLBACK_PATH}"

    @property
    def running(self) -> bool:
        return self._server is not None

    def _handle_callback(self) -> Response:
        code = request.args.get("code", "")
        if not code:
            reason = request.args.get("error")
            message = f"no code in callback ({reason})" if reason else "no code in callback"
            deliver(self.error, ListenerError(message))
            return Response("No code provided", status=400, mimetype="text/plain")

        if deliver(self.code, code):
            logger.info("Authorization code received via callback")
        return Response(SUCCESS_PAGE, status=200, mimetype="text/html")

    def start(self) -> None:
        """Bind the port and serve in a background daemon thread.

        Raises:
            ListenerError: If the port cannot be bound.
        """
        try:
            sock = socket.create_server((self.host, self.port))
        except OSError as e:
            raise ListenerError(f"Cannot listen on {self.host}:{self.port}: {e}") from e

        # Bound here so a busy port raises instead of werkzeug exiting the process;
        # the server serves a duplicate of this socket
        with sock:
            self._server = make_server(
                self.host, self.port, self.app, threaded=True, fd=sock.fileno()
            )
        self.port = self._server.server_address[1]
        self._thread = Thread(
            target=self._server.serve_forever,
            name=f"oauth-callback-{self.port}",
            daemon=True,
        )
        self._thread.start()
        logger.debug("Callback listener serving on %s:%d", self.host, self.port)

    def stop(self, grace: float = 2.0) -> None:
        """Stop serving and release the port.

        Waits up to ``grace`` seconds for the serve loop to finish, then
        closes the socket regardless. Safe to call more than once.
        """
        server = self._server
        if server is None:
            return
        self._server = None

        stopper = Thread(target=server.shutdown, name="oauth-callback-shutdown", daemon=True)
        stopper.start()
        stopper.join(timeout=grace)
        if stopper.is_alive():
            logger.warning("Callback listener did not stop within %.1fs, closing socket", grace)

        server.server_close()
        if self._thread is not None and not stopper.is_alive():
            self._thread.join(timeout=grace)
        logger.debug("Callback listener on port %d closed", self.port)
