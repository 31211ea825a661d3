"""Account list persisted in config.json.

Shape on disk::

    {"accounts": {"work": {"name": "work", "email": "me@company.com"}}}
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from auth.errors import ConfigError, ParseError
from auth.token_store import ensure_private_dir, write_private_json

logger = logging.getLogger(__name__)


@dataclass
class AccountConfig:
    """Configuration for a single Google account."""

    name: str
    email: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name}
        if self.email:
            data["email"] = self.email
        return data


@dataclass
class AccountsConfig:
    """All configured accounts, keyed by account name."""

    accounts: dict[str, AccountConfig] = field(default_factory=dict)

    def names(self) -> list[str]:
        return sorted(self.accounts)


def load_accounts(path: Path) -> AccountsConfig:
    """Load the accounts file.

    A missing file means no accounts are configured yet.

    Raises:
        ParseError: If the file is not valid JSON of the expected shape.
        ConfigError: If the file exists but cannot be read.
    """
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return AccountsConfig()
    except OSError as e:
        raise ConfigError(f"Failed to read config: {e}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ParseError(f"Failed to parse config: {e}") from e
    if not isinstance(data, dict):
        raise ParseError("Config file is not a JSON object")

    accounts: dict[str, AccountConfig] = {}
    for name, entry in (data.get("accounts") or {}).items():
        if not isinstance(entry, dict):
            raise ParseError(f"Config entry for account '{name}' is not an object")
        accounts[name] = AccountConfig(name=entry.get("name", name), email=entry.get("email"))
    return AccountsConfig(accounts=accounts)


def save_accounts(config: AccountsConfig, path: Path) -> None:
    """Write the accounts file owner-only, creating the config and tokens dirs.

    Raises:
        PersistenceError: If a directory or the file cannot be written.
    """
    path = Path(path)
    ensure_private_dir(path.parent / "tokens")
    write_private_json(
        path,
        {"accounts": {name: account.to_dict() for name, account in config.accounts.items()}},
    )
    logger.debug("Saved %d account(s) to %s", len(config.accounts), path)
