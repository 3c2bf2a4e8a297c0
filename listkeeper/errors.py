from __future__ import annotations


class ListkeeperError(Exception):
    """Base class for every error raised by listkeeper."""


class NotFoundError(ListkeeperError, LookupError):
    """A list, task or stored record does not exist."""


class AlreadyExistsError(ListkeeperError):
    """A list name or task id is already taken."""


class ValidationError(ListkeeperError, ValueError):
    """Bad input: empty name, index out of range, missing or conflicting key binding."""


class ExhaustedError(ListkeeperError, RuntimeError):
    """Id allocation gave up. Means ids are not being released."""


class StoreError(ListkeeperError):
    """The underlying database failed."""


class InvariantError(ListkeeperError, AssertionError):
    """A TaskList no longer satisfies its own consistency rules."""
