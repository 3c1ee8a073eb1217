"""Service-level exceptions. Routers translate these into HTTP responses."""


class NotFoundError(LookupError):
    """Unknown session, player, game or challenge."""


class InvalidInputError(ValueError):
    """Malformed or out-of-range input. No state was changed."""


class SessionConflictError(ValueError):
    """The session is in a state that does not allow the operation."""


class InsufficientBalanceError(ValueError):
    """Hint or freeze balance is too low for the requested spend."""
