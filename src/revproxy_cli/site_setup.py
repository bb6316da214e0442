from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from . import sites
from .configmanager import DEFAULT_RENEWAL_SCHEDULE, SiteLayout, ToolPaths
from .errors import CommandError, ConfigValidationError
from .models import CertificatePaths, ProvisionResult, SiteRequest, TlsMode
from .network import BACKEND_OK_STATUSES, NetworkClient
from .provisioner import CertificateProvisioner
from .renewal import ensure_renewal_job
from .synthesizer import synthesize
from .system import CommandRunner, ServiceManager

logger = logging.getLogger(__name__)


@dataclass
class SetupReport:
    request: SiteRequest
    document_path: Path
    link_path: Path
    provision: ProvisionResult
    backend_status: int | None = None
    renewal_added: bool | None = None
    warnings: list[str] = field(default_factory=list)

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    def to_json(self) -> dict[str, Any]:
        return {
            "site": self.request.to_json(),
            "document": str(self.document_path),
            "link": str(self.link_path),
            "certificate": self.provision.to_json(),
            "backend_status": self.backend_status,
            "renewal_added": self.renewal_added,
            "warnings": list(self.warnings),
        }


def plan_proxy_site(request: SiteRequest, layout: SiteLayout) -> dict[str, Any]:
    """Describe what `setup_proxy_site` would touch, without touching anything."""
    identifier = request.identifier
    logs = list(layout.log_paths(identifier))
    if request.tls_mode.enabled:
        logs.extend(layout.log_paths(identifier, tls=True))
    plan: dict[str, Any] = {
        "site": request.to_json(),
        "document": str(layout.document_path(identifier)),
        "link": str(layout.link_path(identifier)),
        "logs": [str(p) for p in logs],
        "certificate": None,
    }
    if request.tls_mode.enabled:
        local = CertificatePaths.local(layout, identifier)
        cert: dict[str, Any] = {"certificate": str(local.certificate), "key": str(local.key)}
        if request.tls_mode is TlsMode.DELEGATED:
            delegated = CertificatePaths.delegated(layout, identifier)
            cert["on_issuance"] = {"certificate": str(delegated.certificate), "key": str(delegated.key)}
        plan["certificate"] = cert
    return plan


def setup_proxy_site(
    request: SiteRequest,
    *,
    layout: SiteLayout,
    tools: ToolPaths,
    runner: CommandRunner,
    network: NetworkClient,
    email: str | None = None,
    register_renewal: bool = True,
    renewal_schedule: str = DEFAULT_RENEWAL_SCHEDULE,
    generated_at: datetime | None = None,
) -> SetupReport:
    """Write, certify, enable and reload an nginx reverse proxy site.

    Raises ConfigValidationError if `nginx -t` rejects the result; the written
    document and link are left in place for inspection.
    """
    identifier = request.identifier
    service = ServiceManager(runner, tools)
    logger.info("Creating reverse proxy configuration for %s", request.domain)
    logger.info("Backend port: %s", request.backend_port)
    logger.info("SSL mode: %s", request.tls_mode.value)

    early_warnings: list[str] = []
    if not network.backend_listening(request.backend_port):
        early_warnings.append(
            f"Backend doesn't seem to be running on port {request.backend_port}; "
            "make sure the site is configured for that port"
        )
        logger.warning(early_warnings[-1])

    document = synthesize(request, layout, generated_at=generated_at)
    document_path = sites.write_document(layout, request, document.render())

    provisioner = CertificateProvisioner(
        layout=layout,
        tools=tools,
        runner=runner,
        service=service,
        network=network,
        email=email,
    )
    provision = provisioner.provision(request, document_path)

    sites.activate(layout, request)
    report = SetupReport(
        request=request,
        document_path=document_path,
        link_path=layout.link_path(identifier),
        provision=provision,
        warnings=early_warnings,
    )

    logger.info("Testing nginx configuration...")
    test = service.test_config()
    if not test.ok:
        raise ConfigValidationError(
            f"nginx configuration test failed; check {document_path}",
            output=test.output,
        )
    logger.info("nginx configuration test passed")

    reload = service.reload()
    if not reload.ok:
        report.warn(f"Reloading {tools.service_name} failed: {reload.output}")

    report.backend_status = network.backend_status(request.backend_port, host_header=request.domain)
    if report.backend_status in BACKEND_OK_STATUSES:
        logger.info("Backend is responding on port %s", request.backend_port)
    else:
        report.warn(f"Backend may not be responding properly on port {request.backend_port}")

    conflicts = sites.find_server_name_conflicts(layout, request)
    if conflicts:
        report.warn("Found potential server name conflicts: " + "; ".join(conflicts))

    for message in sites.check_panel_site(layout, request.domain):
        report.warn(message)

    if request.tls_mode is TlsMode.DELEGATED and register_renewal:
        logger.info("Setting up auto-renewal for Let's Encrypt certificate...")
        try:
            report.renewal_added = ensure_renewal_job(runner, tools, schedule=renewal_schedule)
        except CommandError as e:
            report.warn(f"Could not register renewal job: {e}")

    return report
