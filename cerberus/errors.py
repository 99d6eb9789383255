"""Error taxonomy shared by the command layer and the HTTP surface."""

from typing import Optional


class CerberusError(Exception):
    pass


class ValidationError(CerberusError):
    """Caller input rejected before any remote command runs."""


class SessionNotFoundError(CerberusError):
    def __init__(self, message: str = "session not found or expired"):
        super().__init__(message)


class InvalidCredentialsError(CerberusError):
    pass


class ExecutionFailedError(CerberusError):
    def __init__(
        self,
        message: str,
        command: str = "",
        exit_status: Optional[int] = None,
        stderr: str = "",
    ):
        self.message = message
        self.command = command
        self.exit_status = exit_status
        self.stderr = stderr or ""
        super().__init__(message)

    def __str__(self) -> str:
        text = self.message
        if self.stderr.strip():
            text += f": {self.stderr.strip()}"
        if self.command:
            text += f" (command: {self.command})"
        return text

    def mentions(self, *needles: str) -> bool:
        haystack = f"{self.message}\n{self.stderr}"
        return any(needle in haystack for needle in needles)


class ParseFailedError(CerberusError):
    pass


class NotFoundError(ParseFailedError):
    pass
