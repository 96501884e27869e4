from __future__ import annotations

from typing import Any


class ShellError(Exception):
    """Base class for failures raised by the game shell."""


class MissingConfigurationError(ShellError):
    pass


class AuthenticationRequiredError(ShellError):
    def __init__(self, message: str = "You must be signed in to manage saved games") -> None:
        super().__init__(message)


class RemoteOperationError(ShellError):
    def __init__(self, message: str, status_code: int | None = None, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code

    @classmethod
    def from_payload(cls, payload: Any, status_code: int, reason: str = "") -> RemoteOperationError:
        # Auth and table endpoints disagree on the key that carries the message.
        message = ""
        code: str | None = None
        if isinstance(payload, dict):
            for key in ("message", "msg", "error_description", "error"):
                value = payload.get(key)
                if isinstance(value, str) and value.strip():
                    message = value.strip()
                    break
            raw_code = payload.get("code", payload.get("error_code"))
            if raw_code is not None:
                code = str(raw_code)
        if not message:
            message = reason or f"Request failed with status {status_code}"
        return cls(message, status_code=status_code, code=code)


class NotFoundError(ShellError):
    pass
