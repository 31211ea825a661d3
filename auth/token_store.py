"""Per-account OAuth token storage.

One JSON file per account under the tokens directory, named after the
account. Files are written owner-only and replaced atomically so a reader
never sees a half-written token.
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from auth.errors import ConfigError, ParseError, PersistenceError, TokenNotFoundError

logger = logging.getLogger(__name__)

# Keys owned by AccountCredential; anything else in a token file is passed through.
_TOKEN_FIELDS = ("access_token", "token_type", "refresh_token", "expiry")

# Derived from expiry, never persisted
_TRANSIENT_FIELDS = ("expires_in", "expires_at")


@dataclass
class AccountCredential:
    """An OAuth token belonging to one named account."""

    account_name: str
    access_token: str
    refresh_token: str = ""
    token_type: str = "Bearer"
    expiry: datetime | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Naive expiries are taken as UTC so equality survives a save/load
        if self.expiry is not None and self.expiry.tzinfo is None:
            self.expiry = self.expiry.replace(tzinfo=timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the on-disk token schema."""
        data: dict[str, Any] = dict(self.extra)
        data["access_token"] = self.access_token
        data["token_type"] = self.token_type
        if self.refresh_token:
            data["refresh_token"] = self.refresh_token
        if self.expiry is not None:
            data["expiry"] = self.expiry.isoformat()
        return data

    @classmethod
    def from_dict(cls, account_name: str, data: dict[str, Any]) -> "AccountCredential":
        """Build a credential from a token file's JSON object.

        Raises:
            ParseError: If the expiry is not an RFC3339 timestamp.
        """
        expiry = data.get("expiry")
        return cls(
            account_name=account_name,
            access_token=data.get("access_token", ""),
            refresh_token=data.get("refresh_token", ""),
            token_type=data.get("token_type", "Bearer"),
            expiry=_parse_expiry(expiry) if expiry else None,
            extra={k: v for k, v in data.items() if k not in _TOKEN_FIELDS},
        )

    @classmethod
    def from_token_response(cls, account_name: str, token: dict[str, Any]) -> "AccountCredential":
        """Build a credential from a provider's token endpoint response."""
        expiry = None
        if token.get("expires_at"):
            expiry = datetime.fromtimestamp(float(token["expires_at"]), tz=timezone.utc)
        passthrough = {
            k: v
            for k, v in token.items()
            if k not in _TOKEN_FIELDS and k not in _TRANSIENT_FIELDS
        }
        return cls(
            account_name=account_name,
            access_token=token.get("access_token", ""),
            refresh_token=token.get("refresh_token", ""),
            token_type=token.get("token_type", "Bearer"),
            expiry=expiry,
            extra=passthrough,
        )


def _parse_expiry(value: str) -> datetime:
    """Parse an RFC3339 timestamp, accepting a trailing 'Z'."""
    if not isinstance(value, str):
        raise ParseError(f"Token expiry must be a string, got {type(value).__name__}")
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        return datetime.fromisoformat(text)
    except ValueError as e:
        raise ParseError(f"Invalid token expiry '{value}'") from e


def ensure_private_dir(path: Path) -> None:
    """Create path (and its parent) with owner-only access if missing.

    Raises:
        PersistenceError: If a directory cannot be created.
    """
    try:
        path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        path.mkdir(mode=0o700, exist_ok=True)
    except OSError as e:
        raise PersistenceError(f"Failed to create directory {path}: {e}") from e


def write_private_json(path: Path, data: dict[str, Any]) -> None:
    """Atomically replace path with data as indented JSON, mode 0600.

    The JSON is written to a temporary file in the same directory and
    renamed over the target.

    Raises:
        PersistenceError: If the file cannot be written.
    """
    ensure_private_dir(path.parent)
    payload = json.dumps(data, indent=2)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_name, 0o600)
        os.replace(tmp_name, path)
    except OSError as e:
        Path(tmp_name).unlink(missing_ok=True)
        raise PersistenceError(f"Failed to write {path}: {e}") from e


class TokenStore:
    """Reads and writes one token file per account."""

    def __init__(self, tokens_dir: Path) -> None:
        """Initialize the TokenStore.

        Args:
            tokens_dir: Directory holding ``<account>.json`` token files.
        """
        self.tokens_dir = Path(tokens_dir)

    def path_for(self, account_name: str) -> Path:
        """Return the token file path for an account.

        Raises:
            ConfigError: If the name is empty or would escape the tokens directory.
        """
        if not account_name or account_name in (".", "..") or "/" in account_name or "\\" in account_name:
            raise ConfigError(f"Invalid account name '{account_name}'")
        return self.tokens_dir / f"{account_name}.json"

    def load(self, account_name: str) -> AccountCredential:
        """Load the saved token for an account.

        Raises:
            TokenNotFoundError: If no token file exists for the account.
            ParseError: If the token file is not a valid token JSON object.
            ConfigError: If the file exists but cannot be read.
        """
        path = self.path_for(account_name)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise TokenNotFoundError(f"No token saved for account '{account_name}'") from e
        except OSError as e:
            raise ConfigError(f"Failed to read token {path}: {e}") from e

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ParseError(f"Failed to parse token for account '{account_name}': {e}") from e
        if not isinstance(data, dict):
            raise ParseError(f"Token for account '{account_name}' is not a JSON object")

        return AccountCredential.from_dict(account_name, data)

    def save(self, account_name: str, credential: AccountCredential) -> None:
        """Write the token for an account, replacing any previous one.

        Raises:
            PersistenceError: If the directory or file cannot be written.
        """
        path = self.path_for(account_name)
        write_private_json(path, credential.to_dict())
        logger.info("Saved token for account '%s'", account_name)

    def remove(self, account_name: str) -> None:
        """Delete the token for an account. A missing file is not an error.

        Raises:
            PersistenceError: If the file exists but cannot be deleted.
        """
        path = self.path_for(account_name)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"Failed to remove token for account '{account_name}': {e}") from e
