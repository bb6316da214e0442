from __future__ import annotations


class RevproxyError(RuntimeError):
    pass


class PrivilegeError(RevproxyError):
    pass


class CommandError(RevproxyError):
    pass


class CertificateError(RevproxyError):
    pass


class ConfigValidationError(RevproxyError):
    """`nginx -t` rejected the generated configuration."""

    def __init__(self, message: str, *, output: str = "") -> None:
        super().__init__(message)
        self.output = output
