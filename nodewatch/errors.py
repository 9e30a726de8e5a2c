from __future__ import annotations


class WatchdogError(Exception):
    pass


class ConfigError(WatchdogError):
    """Deployment precondition failed. Fatal at startup, never retried."""


class RegistryError(WatchdogError):
    """The node registry could not be read. Aborts the current sweep."""


class SubmitError(WatchdogError):
    """A reconcile transaction was not accepted. Aborts the current sweep."""
