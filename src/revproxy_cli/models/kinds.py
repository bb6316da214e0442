from __future__ import annotations

from enum import Enum


class TlsMode(str, Enum):
    NONE = "none"
    LOCAL = "self"
    DELEGATED = "letsencrypt"

    @staticmethod
    def parse(value: object) -> TlsMode:
        if isinstance(value, TlsMode):
            return value
        v = "" if value is None else str(value).strip().lower()
        if v in {"", "none", "false"}:
            return TlsMode.NONE
        if v in {"self", "true"}:
            return TlsMode.LOCAL
        if v in {"letsencrypt", "le"}:
            return TlsMode.DELEGATED
        raise ValueError(f"Unknown TLS mode: {value} (use one of: none, self, letsencrypt, true)")

    @property
    def enabled(self) -> bool:
        return self is not TlsMode.NONE


class ProvisionOutcome(str, Enum):
    NO_OP = "no-op"
    SIGNED_LOCALLY = "signed-locally"
    DELEGATED_SIGNED = "delegated-signed"
