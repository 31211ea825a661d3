"""Google OAuth provider.

Wraps google_auth_oauthlib's Flow for the installed-application code
grant and the primary-calendar lookup used to identify an account.
"""

import json
import logging
from pathlib import Path
from typing import Any

from google_auth_oauthlib.flow import Flow

from auth.errors import ConfigError, ExchangeError, IdentityLookupError, ParseError
from auth.token_store import AccountCredential

logger = logging.getLogger(__name__)

# Read-only scope only
SCOPES = ("https://www.googleapis.com/auth/calendar.readonly",)


def load_client_config(credentials_path: Path) -> dict[str, Any]:
    """Load the OAuth client secrets file.

    Args:
        credentials_path: Path to credentials.json downloaded from Google Cloud Console.

    Returns:
        The parsed client config with an "installed" or "web" section.

    Raises:
        ConfigError: If the file is missing or unreadable.
        ParseError: If the file is not a valid client secrets document.
    """
    path = Path(credentials_path)
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ConfigError(
            f"credentials.json not found. Please place your Google OAuth credentials at: {path}"
        ) from e
    except OSError as e:
        raise ConfigError(f"Failed to read credentials file {path}: {e}") from e

    try:
        config = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ParseError(f"Failed to parse credentials: {e}") from e

    if not isinstance(config, dict) or not ("installed" in config or "web" in config):
        raise ParseError("Credentials file has neither an 'installed' nor a 'web' client section")
    return config


def client_section(client_config: dict[str, Any]) -> dict[str, Any]:
    """Return the "installed" (or "web") section of a client config."""
    return client_config.get("installed") or client_config["web"]


class GoogleAuthorization:
    """One in-flight authorization: the consent URL and its matching exchange."""

    def __init__(self, flow: Flow) -> None:
        self._flow = flow
        self.url, self.state = flow.authorization_url(access_type="offline", prompt="consent")

    def exchange(self, code: str, account_name: str) -> AccountCredential:
        """Trade an authorization code for a token.

        Raises:
            ExchangeError: If the token endpoint rejects the code or cannot be reached.
        """
        try:
            token = self._flow.fetch_token(code=code)
        except Exception as e:  # oauthlib errors, requests errors and scope-change warnings
            raise ExchangeError(f"Failed to exchange code for token: {e}") from e
        return AccountCredential.from_token_response(account_name, dict(token))


class GoogleOAuthProvider:
    """Google as the authorization server and identity source."""

    def __init__(self, client_config: dict[str, Any], scopes: tuple[str, ...] = SCOPES) -> None:
        self.client_config = client_config
        self.scopes = scopes

    @classmethod
    def from_client_secrets_file(cls, credentials_path: Path) -> "GoogleOAuthProvider":
        return cls(load_client_config(credentials_path))

    def begin(self, redirect_uri: str) -> GoogleAuthorization:
        """Start an authorization that redirects to redirect_uri."""
        flow = Flow.from_client_config(
            self.client_config, scopes=list(self.scopes), redirect_uri=redirect_uri
        )
        return GoogleAuthorization(flow)

    def lookup_email(self, credential: AccountCredential) -> str:
        """Resolve the account's email from its primary calendar.

        Raises:
            IdentityLookupError: If the calendar API call fails.
        """
        from auth.service import build_calendar_service

        try:
            service = build_calendar_service(credential, self.client_config, self.scopes)
            calendar = service.calendarList().get(calendarId="primary").execute()
        except Exception as e:  # HttpError, google-auth and httplib2 transport errors
            raise IdentityLookupError(f"Failed to get primary calendar: {e}") from e

        email = calendar.get("id", "")
        if not email:
            raise IdentityLookupError("Primary calendar has no id")
        return email
