"""Service-level error taxonomy shared by every resource."""


class ValidationError(ValueError):
    """Malformed or out-of-range caller input (HTTP 400)."""


class NotFoundError(LookupError):
    """Entity is absent or owned by someone else (HTTP 404).

    The two cases are deliberately indistinguishable to the caller.
    """


class ConflictError(Exception):
    """Write would break a one-per-owner rule (HTTP 409)."""
