from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .. import utils
from .kinds import ProvisionOutcome, TlsMode

if TYPE_CHECKING:
    from ..configmanager import SiteLayout

DEFAULT_BACKEND_PORT = 8080

# Characters that would end or break out of an nginx server_name directive.
_UNSAFE_DOMAIN_CHARS = re.compile(r"[\s;{}#'\"\\\x00-\x1f\x7f]")


@dataclass(frozen=True)
class SiteRequest:
    domain: str
    backend_port: int = DEFAULT_BACKEND_PORT
    tls_mode: TlsMode = TlsMode.NONE

    def __post_init__(self) -> None:
        if not self.domain or not self.domain.strip():
            raise ValueError("domain is required")
        if _UNSAFE_DOMAIN_CHARS.search(self.domain):
            raise ValueError(f"domain contains characters not allowed in server_name: {self.domain!r}")
        if not self.identifier:
            raise ValueError(f"domain has no usable characters: {self.domain!r}")
        utils.parse_port(self.backend_port, field="backend_port")

    @property
    def identifier(self) -> str:
        return utils.normalize_domain(self.domain)

    @property
    def backend_url(self) -> str:
        return f"http://127.0.0.1:{self.backend_port}"

    @classmethod
    def from_values(
        cls,
        domain: object,
        backend_port: object = DEFAULT_BACKEND_PORT,
        tls_mode: object = TlsMode.NONE,
    ) -> SiteRequest:
        """Build a request from raw CLI/YAML values, resolving the TLS mode once."""
        return cls(
            domain=str(domain or "").strip(),
            backend_port=utils.parse_port(backend_port, field="backend_port"),
            tls_mode=TlsMode.parse(tls_mode),
        )

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> SiteRequest:
        port = data.get("backend_port", data.get("port"))
        tls = data.get("tls_mode", data.get("tls", data.get("ssl")))
        return cls.from_values(
            data.get("domain"),
            DEFAULT_BACKEND_PORT if port is None else port,
            TlsMode.NONE if tls is None else tls,
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "domain": self.domain,
            "identifier": self.identifier,
            "backend_port": self.backend_port,
            "tls_mode": self.tls_mode.value,
        }


@dataclass(frozen=True)
class CertificatePaths:
    certificate: Path
    key: Path

    @classmethod
    def local(cls, layout: SiteLayout, identifier: str) -> CertificatePaths:
        return cls(
            certificate=layout.ssl_cert_dir / f"{identifier}.crt",
            key=layout.ssl_key_dir / f"{identifier}.key",
        )

    @classmethod
    def delegated(cls, layout: SiteLayout, identifier: str) -> CertificatePaths:
        live = layout.letsencrypt_live_dir / identifier
        return cls(certificate=live / "fullchain.pem", key=live / "privkey.pem")


@dataclass(frozen=True)
class ProvisionResult:
    outcome: ProvisionOutcome
    paths: CertificatePaths | None = None

    def to_json(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "certificate": None if self.paths is None else str(self.paths.certificate),
            "key": None if self.paths is None else str(self.paths.key),
        }
