from __future__ import annotations


class MediaShelfError(Exception):
    """Base class for every failure raised by mediashelf.

    ``message`` is safe to show to a user; ``detail`` is meant for logs.
    """

    def __init__(self, message: str, detail: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message} ({self.detail})"
        return self.message


class ActionError(MediaShelfError):
    """The request violated a precondition of the action."""


class UnsupportedActionError(ActionError):
    pass


class UnknownKeyError(ActionError):
    pass


class SizeMismatchError(ActionError):
    pass


class InvalidUploadError(ActionError):
    COUNT = "count"
    TOO_LARGE = "too_large"
    TRANSPORT = "transport"
    FATAL = "fatal"

    def __init__(self, message: str, kind: str, detail: str = "") -> None:
        super().__init__(message, detail)
        self.kind = kind


class UnsupportedMediaTypeError(ActionError):
    pass


class DecodeError(MediaShelfError):
    pass


class AllocationExhaustedError(MediaShelfError):
    pass


class StorageError(MediaShelfError):
    pass
