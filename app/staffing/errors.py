from __future__ import annotations


class UserFacingError(Exception):
    """
    A workflow step could not run (unknown entity, missing permission).
    Blueprints turn it into a flash message plus a redirect.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(Exception):
    """Submitted form data is invalid; `errors` maps field name to messages."""

    def __init__(self, errors: dict[str, list[str]]) -> None:
        super().__init__("; ".join(m for msgs in errors.values() for m in msgs))
        self.errors = errors

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls({field: [message]})
