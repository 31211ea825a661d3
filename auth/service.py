"""Authenticated Google Calendar clients for saved accounts.

Refreshing an expired access token is left to google-auth: the
Credentials built here carry the refresh token and client secrets, and
the API client refreshes them on demand.
"""

import logging
from datetime import timezone
from typing import Any

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from auth.provider import SCOPES, client_section
from auth.token_store import AccountCredential, TokenStore

logger = logging.getLogger(__name__)


def build_credentials(
    credential: AccountCredential,
    client_config: dict[str, Any],
    scopes: tuple[str, ...] = SCOPES,
) -> Credentials:
    """Convert a saved token into google-auth Credentials.

    Args:
        credential: The account's saved token.
        client_config: Parsed OAuth client secrets.
        scopes: Scopes the token was granted for.

    Returns:
        Credentials able to refresh themselves with the stored refresh token.
    """
    client = client_section(client_config)
    expiry = None
    if credential.expiry is not None:
        # google-auth compares against naive UTC
        expiry = credential.expiry.astimezone(timezone.utc).replace(tzinfo=None)

    return Credentials(
        token=credential.access_token,
        refresh_token=credential.refresh_token or None,
        id_token=credential.extra.get("id_token"),
        token_uri=client.get("token_uri", "https://oauth2.googleapis.com/token"),
        client_id=client.get("client_id"),
        client_secret=client.get("client_secret"),
        scopes=list(scopes),
        expiry=expiry,
    )


def build_calendar_service(
    credential: AccountCredential,
    client_config: dict[str, Any],
    scopes: tuple[str, ...] = SCOPES,
) -> Any:
    """Build a Calendar v3 API client for a saved token."""
    creds = build_credentials(credential, client_config, scopes)
    return build("calendar", "v3", credentials=creds, cache_discovery=False)


def get_calendar_service(
    account_name: str,
    store: TokenStore,
    client_config: dict[str, Any],
) -> Any:
    """Build a Calendar client from the account's token as currently on disk.

    Raises:
        TokenNotFoundError: If the account has no saved token.
        ParseError: If the saved token is corrupt.
    """
    credential = store.load(account_name)
    logger.debug("Building calendar service for account '%s'", account_name)
    return build_calendar_service(credential, client_config)
