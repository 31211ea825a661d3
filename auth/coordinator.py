"""Interactive OAuth authorization for one named account.

Starts a local callback listener, shows the consent URL, and races the
browser redirect against a manually pasted code under a hard deadline.
The winning code is exchanged for a token, the token is saved, and the
account's email is looked up.

Session states:
    idle -> listener_started -> awaiting_code -> exchanging -> succeeded | failed

The listener is always closed before the code is exchanged, so the port
is free again by the time authorize() returns or raises.
"""

import logging
import time
import webbrowser
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from enum import Enum
from functools import partial
from threading import Thread
from typing import Any, Callable

from auth.callback import CallbackListener
from auth.errors import AuthError, AuthorizationTimeoutError, ConfigError, IdentityLookupError
from auth.manual import ManualCodeReader
from auth.provider import GoogleOAuthProvider
from auth.signals import first_of
from auth.token_store import TokenStore
from config.settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300.0
DEFAULT_SHUTDOWN_GRACE = 2.0


class SessionState(str, Enum):
    IDLE = "idle"
    LISTENER_STARTED = "listener_started"
    AWAITING_CODE = "awaiting_code"
    EXCHANGING = "exchanging"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class AuthorizationSession:
    """State of one authorize() call. Never shared between accounts."""

    account_name: str
    redirect_port: int
    deadline: float
    state: SessionState = SessionState.IDLE

    def advance(self, state: SessionState) -> None:
        logger.debug("Session '%s': %s -> %s", self.account_name, self.state.value, state.value)
        self.state = state

    def remaining(self) -> float:
        return max(0.0, self.deadline - time.monotonic())


def open_browser(url: str, opener: Callable[[str], Any] = webbrowser.open) -> None:
    """Try to open url in a browser without waiting or reporting failure."""

    def run() -> None:
        try:
            opener(url)
        except Exception as e:  # any failure only costs the operator a copy-paste
            logger.debug("Could not open browser: %s", e)

    Thread(target=run, name="oauth-browser", daemon=True).start()


class AuthorizationCoordinator:
    """Runs the authorization code flow for one account at a time."""

    def __init__(
        self,
        store: TokenStore,
        provider_factory: Callable[[], Any],
        host: str = "127.0.0.1",
        port: int = 8089,
        timeout: float = DEFAULT_TIMEOUT,
        shutdown_grace: float = DEFAULT_SHUTDOWN_GRACE,
        input_func: Callable[[str], str] | None = input,
        browser_opener: Callable[[str], Any] = webbrowser.open,
    ) -> None:
        """Initialize the AuthorizationCoordinator.

        Args:
            store: Where tokens are saved.
            provider_factory: Zero-argument callable returning the OAuth provider.
                Called at the start of each authorize(), so a missing client
                secrets file is reported before anything is bound or written.
            host: Loopback address for the callback listener.
            port: Fixed callback port registered with the provider.
            timeout: Seconds from session start before giving up.
            shutdown_grace: Seconds to wait for the listener to stop before force-closing it.
            input_func: Reads the manually pasted code; None disables manual entry.
            browser_opener: Opens the consent URL; failures are ignored.
        """
        self.store = store
        self.provider_factory = provider_factory
        self.host = host
        self.port = port
        self.timeout = timeout
        self.shutdown_grace = shutdown_grace
        self.input_func = input_func
        self.browser_opener = browser_opener

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "AuthorizationCoordinator":
        """Build a coordinator for Google from application settings."""
        return cls(
            store=TokenStore(settings.tokens_dir),
            provider_factory=partial(
                GoogleOAuthProvider.from_client_secrets_file, settings.credentials_path
            ),
            host=settings.callback_host,
            port=settings.callback_port,
            timeout=settings.auth_timeout,
            shutdown_grace=settings.shutdown_grace,
            **kwargs,
        )

    def authorize(self, account_name: str) -> str:
        """Authorize an account interactively and save its token.

        Args:
            account_name: Name the token is stored under. An existing token is overwritten.

        Returns:
            The account's email address.

        Raises:
            ConfigError: If the client secrets file is missing or unusable.
            ListenerError: If the callback port is taken or the callback had no code.
            AuthorizationTimeoutError: If no code arrived before the deadline.
            ExchangeError: If the provider rejected the code. Nothing is saved.
            PersistenceError: If the token could not be written.
            IdentityLookupError: If the email lookup failed. The token stays saved.
        """
        # Rejects names that cannot be used as a token file name
        self.store.path_for(account_name)
        provider = self.provider_factory()

        session = AuthorizationSession(
            account_name=account_name,
            redirect_port=self.port,
            deadline=time.monotonic() + self.timeout,
        )
        try:
            code, authorization = self._await_code(session, provider)

            session.advance(SessionState.EXCHANGING)
            credential = authorization.exchange(code, account_name)
            self.store.save(account_name, credential)
        except AuthError:
            session.advance(SessionState.FAILED)
            raise

        # The token is committed; a failed lookup does not undo it
        try:
            email = provider.lookup_email(credential)
        except IdentityLookupError:
            session.advance(SessionState.FAILED)
            raise
        session.advance(SessionState.SUCCEEDED)

        print(f"\n✅ Account '{account_name}' configured successfully!")
        print(f"   Email: {email}\n")
        return email

    def _await_code(self, session: AuthorizationSession, provider: Any) -> tuple[str, Any]:
        """Run the listener and manual reader until one delivers a code."""
        listener = CallbackListener(self.host, self.port)
        reader = ManualCodeReader(self.input_func) if self.input_func is not None else None

        listener.start()
        session.redirect_port = listener.port
        try:
            session.advance(SessionState.LISTENER_STARTED)
            try:
                authorization = provider.begin(listener.redirect_uri)
            except (ValueError, KeyError) as e:
                raise ConfigError(f"Invalid OAuth client configuration: {e}") from e
            _print_instructions(session.account_name, authorization.url, reader is not None)
            open_browser(authorization.url, self.browser_opener)

            sources = [listener.code, listener.error]
            if reader is not None:
                reader.start()
                sources.append(reader.code)
            winner = first_of(*sources)

            session.advance(SessionState.AWAITING_CODE)
            try:
                source = winner.result(timeout=session.remaining())
            except FutureTimeoutError:
                raise AuthorizationTimeoutError(
                    f"Timed out after {self.timeout:.0f}s waiting for authorization"
                ) from None

            if source is listener.error:
                raise source.result()
            print("\n✅ Authorization code received!")
            return source.result(), authorization
        finally:
            if reader is not None:
                reader.stop()
            listener.stop(self.shutdown_grace)


def _print_instructions(account_name: str, url: str, manual: bool) -> None:
    print(f"\n=== OAuth Authentication for account '{account_name}' ===")
    print("\n1. Opening browser for authentication...")
    if manual:
        print("\n2. If the callback doesn't work, copy the authorization code from the URL")
        print("   (the 'code' parameter) and paste it below.")
    print(f"\nAuth URL (if browser doesn't open):\n{url}\n")
