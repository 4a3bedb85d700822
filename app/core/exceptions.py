"""
Typed failures raised by the core. The HTTP layer maps them to status codes in
app.main; nothing in the core turns them into responses itself.
"""


class CoreError(Exception):
    """Base class for every failure the core surfaces to its callers."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def __str__(self):
        return self.message


class NotFound(CoreError):
    pass


class AccessDenied(NotFound):
    """
    The entity exists but lies outside the actor's subtree. Carries the same
    message as a plain NotFound so callers cannot probe the tree with it.
    """


class InvalidParent(CoreError):
    pass


class DuplicateEmail(CoreError):
    pass


class DuplicateClient(CoreError):
    pass


class HasChildren(CoreError):
    pass


class InvalidTransition(CoreError):
    pass


class ConcurrentModification(CoreError):
    pass


class Unauthorized(CoreError):
    """The actor's role does not allow the operation at all."""


class AgencyRequired(CoreError):
    pass


class StoreUnavailable(CoreError):
    """The store aborted the operation (lock timeout, dropped connection). Safe to retry."""
