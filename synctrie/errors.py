"""Error type raised by the storage layer."""

from __future__ import annotations


class HubError(Exception):
    """An error carrying a dotted category code and a human-readable message."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(code, message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return f"{self.code}/{self.message}"

    @classmethod
    def validation_failure(cls, message: str) -> HubError:
        return cls("bad_request.validation_failure", message)

    @classmethod
    def invalid_param(cls, message: str) -> HubError:
        return cls("bad_request.invalid_param", message)

    @classmethod
    def internal_error(cls, message: str) -> HubError:
        return cls("bad_request.internal_error", message)