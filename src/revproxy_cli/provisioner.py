"""Certificate acquisition for TLS-enabled sites.

Local mode self-signs with openssl. Delegated mode asks Let's Encrypt via
certbot in standalone mode and falls back to self-signing whenever the
domain does not point at this host or certbot fails.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from . import utils
from .configmanager import SiteLayout, ToolPaths
from .errors import CertificateError
from .models import CertificatePaths, ProvisionOutcome, ProvisionResult, SiteRequest, TlsMode
from .network import NetworkClient
from .synthesizer import rewrite_certificate_paths
from .system import CommandRunner, ServiceManager

logger = logging.getLogger(__name__)

SELF_SIGNED_DAYS = 365
SELF_SIGNED_KEY_BITS = 2048
SELF_SIGNED_SUBJECT = "/C=US/ST=State/L=City/O=Organization/OU=OrgUnit/CN={cn}/emailAddress=admin@{cn}"
CERTBOT_PACKAGES = ("certbot", "python3-certbot-nginx")


@dataclass
class CertificateProvisioner:
    layout: SiteLayout
    tools: ToolPaths
    runner: CommandRunner
    service: ServiceManager
    network: NetworkClient
    email: str | None = None

    def provision(self, request: SiteRequest, document_path: Path | None = None) -> ProvisionResult:
        identifier = request.identifier
        if request.tls_mode is TlsMode.NONE:
            return ProvisionResult(ProvisionOutcome.NO_OP)

        if request.tls_mode is TlsMode.LOCAL:
            return ProvisionResult(ProvisionOutcome.SIGNED_LOCALLY, self.generate_self_signed(identifier))

        if not self.check_reachability(identifier):
            logger.warning("DNS doesn't point to this server, using self-signed certificate")
            return ProvisionResult(ProvisionOutcome.SIGNED_LOCALLY, self.generate_self_signed(identifier))

        if not self.request_delegated_cert(identifier):
            logger.warning("Let's Encrypt failed, falling back to self-signed certificate")
            return ProvisionResult(ProvisionOutcome.SIGNED_LOCALLY, self.generate_self_signed(identifier))

        delegated = CertificatePaths.delegated(self.layout, identifier)
        if document_path is not None:
            rewrite_certificate_paths(document_path, CertificatePaths.local(self.layout, identifier), delegated)
        return ProvisionResult(ProvisionOutcome.DELEGATED_SIGNED, delegated)

    def generate_self_signed(self, identifier: str) -> CertificatePaths:
        paths = CertificatePaths.local(self.layout, identifier)
        logger.info("Generating self-signed SSL certificate for %s", identifier)
        paths.certificate.parent.mkdir(parents=True, exist_ok=True)
        paths.key.parent.mkdir(parents=True, exist_ok=True)

        result = self.runner.run(
            [
                self.tools.openssl,
                "req",
                "-x509",
                "-nodes",
                "-days",
                str(SELF_SIGNED_DAYS),
                "-newkey",
                f"rsa:{SELF_SIGNED_KEY_BITS}",
                "-keyout",
                str(paths.key),
                "-out",
                str(paths.certificate),
                "-subj",
                SELF_SIGNED_SUBJECT.format(cn=identifier),
                "-addext",
                f"subjectAltName=DNS:{identifier},DNS:{utils.www_variant(identifier)}",
            ]
        )
        if not result.ok:
            raise CertificateError(f"Self-signed certificate generation failed for {identifier}: {result.output}")

        try:
            os.chmod(paths.key, 0o600)
            os.chmod(paths.certificate, 0o644)
        except OSError as e:
            raise CertificateError(f"Failed to set permissions on certificate files: {e}") from e
        logger.info("Self-signed certificate generated: %s", paths.certificate)
        return paths

    def check_reachability(self, domain: str) -> bool:
        server_ip = self.network.public_address()
        logger.info("Checking DNS for %s (Server IP: %s)", domain, server_ip or "unknown")
        if server_ip is None:
            logger.warning("Could not determine this server's public address")
            return False
        domain_ip = self.network.resolve_address(domain)
        if domain_ip == server_ip:
            logger.info("DNS check passed: %s points to this server", domain)
            return True
        logger.warning("DNS check: %s points to %s, server IP is %s", domain, domain_ip or "nothing", server_ip)
        return False

    def _ensure_certbot(self) -> bool:
        if self.runner.which(self.tools.certbot):
            return True
        logger.warning("Certbot not found. Installing certbot...")
        if not self.runner.run(["apt-get", "update"]).ok:
            return False
        installed = self.runner.run(["apt-get", "install", "-y", *CERTBOT_PACKAGES]).ok
        return installed and self.runner.which(self.tools.certbot) is not None

    def request_delegated_cert(self, domain: str) -> bool:
        logger.info("Generating Let's Encrypt SSL certificate for %s", domain)
        if not self._ensure_certbot():
            logger.error("Certbot is not available")
            return False

        email = self.email or f"admin@{domain}"
        # Standalone issuance binds port 80 itself.
        with self.service.stopped():
            result = self.runner.run(
                [
                    self.tools.certbot,
                    "certonly",
                    "--standalone",
                    "-d",
                    domain,
                    "-d",
                    utils.www_variant(domain),
                    "--agree-tos",
                    "--non-interactive",
                    "--email",
                    email,
                ]
            )
        if result.ok:
            logger.info("Let's Encrypt certificate generated successfully")
            return True
        logger.error("Let's Encrypt certificate generation failed: %s", result.output)
        return False
