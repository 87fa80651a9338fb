"""Errors raised across the pricing package."""


class PricingError(Exception):
    """Base class."""


class PersistenceError(PricingError):
    """A write or read against the backing store failed."""


class SessionNotFoundError(PricingError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id


class InvalidTableError(PricingError):
    """An edit would leave a tiered table invalid; nothing was saved."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors) or "Invalid pricing table")
        self.errors = list(errors)
