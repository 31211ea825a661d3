"""Error taxonomy for the authorization flow and credential lifecycle.

Every failure is raised to the caller; nothing here is retried. Where a
builtin exception already names the concept, the class also derives from
it so callers can catch either.
"""


class AuthError(Exception):
    """Base class for all account and authorization errors."""


class ConfigError(AuthError):
    """The OAuth client credentials file is missing or unreadable."""


class ParseError(AuthError, ValueError):
    """A credentials, token or accounts file is not valid JSON of the expected shape."""


class TokenNotFoundError(AuthError, FileNotFoundError):
    """No token has been saved for the account yet."""


class ListenerError(AuthError):
    """The local callback listener could not bind, or the callback carried no code."""


class ExchangeError(AuthError):
    """The provider rejected the code-for-token exchange."""


class AuthorizationTimeoutError(AuthError, TimeoutError):
    """No authorization code arrived before the session deadline."""


class PersistenceError(AuthError, OSError):
    """A directory or file could not be created or written."""


class IdentityLookupError(AuthError):
    """The token was saved but the account's identity could not be resolved."""


class AccountError(AuthError):
    """An account command referred to an account in the wrong state."""
