"""Account management commands.

Keeps config.json and the tokens directory in step: an account is listed
in the config exactly when it has a saved token.
"""

import logging
from typing import Any

from auth.coordinator import AuthorizationCoordinator
from auth.errors import AccountError, IdentityLookupError
from auth.provider import load_client_config
from auth.service import get_calendar_service
from auth.token_store import TokenStore
from config.accounts import AccountConfig, load_accounts, save_accounts
from config.settings import Settings

logger = logging.getLogger(__name__)


class AccountManager:
    """Adds, re-authorizes, lists and removes Google accounts."""

    def __init__(
        self,
        settings: Settings,
        coordinator: AuthorizationCoordinator | None = None,
    ) -> None:
        self.settings = settings
        self.store = TokenStore(settings.tokens_dir)
        self.coordinator = coordinator or AuthorizationCoordinator.from_settings(settings)

    def list_accounts(self) -> list[str]:
        return load_accounts(self.settings.accounts_path).names()

    def add_account(self, name: str) -> str:
        """Authorize a new account and record it.

        Returns:
            The account's email.

        Raises:
            AccountError: If the account already exists.
        """
        config = load_accounts(self.settings.accounts_path)
        if name in config.accounts:
            raise AccountError(f"account '{name}' already exists")
        return self._authorize_and_record(name)

    def reauthorize_account(self, name: str) -> str:
        """Run the authorization again for an existing account, replacing its token.

        Raises:
            AccountError: If the account is not configured.
        """
        config = load_accounts(self.settings.accounts_path)
        if name not in config.accounts:
            raise AccountError(f"account '{name}' not found")
        return self._authorize_and_record(name)

    def _authorize_and_record(self, name: str) -> str:
        try:
            email = self.coordinator.authorize(name)
        except IdentityLookupError:
            # The token is on disk, so the account must be listed too
            logger.warning("Account '%s' saved without an email", name)
            self._record(name, None)
            raise
        self._record(name, email)
        return email

    def _record(self, name: str, email: str | None) -> None:
        config = load_accounts(self.settings.accounts_path)
        config.accounts[name] = AccountConfig(name=name, email=email)
        save_accounts(config, self.settings.accounts_path)

    def remove_account(self, name: str) -> None:
        """Delete an account's token and config entry.

        Raises:
            AccountError: If the account is not configured.
        """
        config = load_accounts(self.settings.accounts_path)
        if name not in config.accounts:
            raise AccountError(f"account '{name}' not found")

        self.store.remove(name)
        del config.accounts[name]
        save_accounts(config, self.settings.accounts_path)
        logger.info("Removed account '%s'", name)

    def calendar_service(self, name: str) -> Any:
        """Build an authenticated Calendar client from the account's current token."""
        client_config = load_client_config(self.settings.credentials_path)
        return get_calendar_service(name, self.store, client_config)
