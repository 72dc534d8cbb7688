"""Exceptions raised by ghactivity_core.

Storage failures are not defined here: they are ghactivity_store.base.StorageError
so the store package stays independent of the core.
"""


class ActivityError(Exception):
    """Base class for errors surfaced to the CLI or an embedding application."""


class AuthenticationError(ActivityError):
    """The GitHub token was rejected by the identity pre-check."""


class FetchError(ActivityError):
    """Fetching one record kind failed with an unrecoverable API error."""


class ConfigError(ActivityError):
    """Configuration is missing required values or holds invalid ones."""
