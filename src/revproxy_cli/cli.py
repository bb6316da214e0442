from __future__ import annotations

import logging
from pathlib import Path

import typer

from . import sites, utils
from .cli_common import (
    build_request,
    build_runner,
    ensure_root,
    load_config_callback,
    network_context,
    print_json,
)
from .configmanager import ConfigManager, SiteLayout
from .errors import CertificateError, ConfigValidationError
from .models import SiteRequest
from .site_loader import load_site_requests
from .site_setup import SetupReport, plan_proxy_site, setup_proxy_site
from .synthesizer import synthesize
from .system import ServiceManager

logger = logging.getLogger(__name__)

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    pretty_exceptions_enable=True,
    pretty_exceptions_show_locals=False,
    pretty_exceptions_short=True,
)

TLS_MODE_HELP = "none, self, letsencrypt (alias le) or true (alias for self)"


@app.callback()
def _main(
    env_file: str | None = typer.Option(
        None,
        "--env-file",
        envvar="REVPROXY_ENV_FILE",
        is_eager=True,
        callback=load_config_callback,
        help="dotenv file to load before reading REVPROXY_* settings",
    ),
    log_level: str = typer.Option(
        "INFO",
        "--log-level",
        envvar="REVPROXY_LOG_LEVEL",
        help="Console logging level (DEBUG, INFO, WARNING, ERROR)",
        show_default=True,
    ),
    log_file: str | None = typer.Option(None, "--log-file", envvar="REVPROXY_LOG_FILE", help="Also log to this file"),
    log_file_level: str | None = typer.Option(None, "--log-file-level", envvar="REVPROXY_LOG_FILE_LEVEL"),
) -> None:
    try:
        ConfigManager.configure_logging(log_level, log_file=log_file, file_level=log_file_level)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from None


def _layout() -> SiteLayout:
    return ConfigManager.layout()


def _renewal_schedule() -> str:
    try:
        return ConfigManager.renewal_schedule()
    except ValueError as e:
        raise typer.BadParameter(str(e)) from None


def _print_summary(report: SetupReport, layout: SiteLayout) -> None:
    request = report.request
    identifier = request.identifier
    typer.echo("Reverse proxy setup completed successfully!")
    typer.echo("")
    typer.echo("Your site should now be accessible at:")
    typer.echo(f"  http://{request.domain}")
    if request.tls_mode.enabled:
        typer.echo(f"  https://{request.domain}  ({report.provision.outcome.value})")
        if report.provision.paths is not None:
            typer.echo(f"  certificate: {report.provision.paths.certificate}")
    typer.echo(f"Backend: {request.backend_url}")
    typer.echo("")
    typer.echo("Log files:")
    logs = list(layout.log_paths(identifier))
    if request.tls_mode.enabled:
        logs.extend(layout.log_paths(identifier, tls=True))
    for p in logs:
        typer.echo(f"  {p}")
    typer.echo("")
    typer.echo(f"Config file: {report.document_path}")
    typer.echo(f"Symlink: {report.link_path}")
    typer.echo("")
    typer.echo("Troubleshooting:")
    typer.echo(f"  disable this site: revproxy disable {request.domain}")
    typer.echo(f"  view logs: tail -f {logs[0]}")
    typer.echo(f"  test backend directly: curl -H 'Host: {request.domain}' {request.backend_url}")
    typer.echo(f"  test frontend: curl -I http://{request.domain}")
    if request.tls_mode.enabled:
        typer.echo(f"  test TLS: curl -I https://{request.domain}")
    if report.warnings:
        typer.echo("")
        typer.echo(f"Finished with {len(report.warnings)} warning(s); see log output above.")


def _run_setup(
    request: SiteRequest,
    *,
    layout: SiteLayout,
    email: str | None,
    register_renewal: bool,
) -> SetupReport:
    schedule = _renewal_schedule()
    with network_context() as network:
        try:
            return setup_proxy_site(
                request,
                layout=layout,
                tools=ConfigManager.tools(),
                runner=build_runner(),
                network=network,
                email=email,
                register_renewal=register_renewal,
                renewal_schedule=schedule,
            )
        except ConfigValidationError as e:
            typer.echo(f"ERROR: {e}", err=True)
            if e.output:
                typer.echo(e.output, err=True)
            raise typer.Exit(code=1) from None
        except CertificateError as e:
            typer.echo(f"ERROR: {e}", err=True)
            raise typer.Exit(code=1) from None


@app.command("create")
def create(
    domain: str = typer.Argument(..., help="Domain to proxy, e.g. mysite.com"),
    backend_port: str = typer.Argument("8080", help="Local backend port"),
    tls_mode: str = typer.Argument("none", help=TLS_MODE_HELP),
    email: str | None = typer.Option(None, "--email", envvar="REVPROXY_EMAIL", help="Let's Encrypt account email"),
    no_renewal: bool = typer.Option(False, "--no-renewal", help="Do not register a certbot renew cron job"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print what would be written and exit"),
    json_out: bool = typer.Option(False, "--json", help="Print the setup report as JSON"),
) -> None:
    """Generate, certify and enable an nginx reverse proxy for DOMAIN."""
    request = build_request(domain, backend_port, tls_mode)
    layout = _layout()
    if dry_run:
        print_json({"action": "create", "plan": plan_proxy_site(request, layout)})
        return

    ensure_root()
    report = _run_setup(request, layout=layout, email=email, register_renewal=not no_renewal)
    if json_out:
        print_json(report.to_json())
        return
    _print_summary(report, layout)


@app.command("render")
def render(
    domain: str = typer.Argument(..., help="Domain to proxy"),
    backend_port: str = typer.Argument("8080", help="Local backend port"),
    tls_mode: str = typer.Argument("none", help=TLS_MODE_HELP),
) -> None:
    """Print the nginx server blocks for DOMAIN without writing anything."""
    request = build_request(domain, backend_port, tls_mode)
    typer.echo(synthesize(request, _layout()).render(), nl=False)


@app.command("apply")
def apply(
    file: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        help="YAML file with a site mapping or a `sites:` list",
    ),
    email: str | None = typer.Option(None, "--email", envvar="REVPROXY_EMAIL"),
    no_renewal: bool = typer.Option(False, "--no-renewal"),
    dry_run: bool = typer.Option(False, "--dry-run"),
) -> None:
    """Create every site declared in a YAML file, in order."""
    try:
        requests = load_site_requests(file)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from None

    layout = _layout()
    if dry_run:
        print_json({"action": "apply", "plans": [plan_proxy_site(r, layout) for r in requests]})
        return

    ensure_root()
    warned = 0
    for request in requests:
        report = _run_setup(request, layout=layout, email=email, register_renewal=not no_renewal)
        warned += 1 if report.warnings else 0
        typer.echo(f"{request.domain}\t{request.tls_mode.value}\t{report.provision.outcome.value}\t{report.document_path}")
    typer.echo(f"Applied {len(requests)} site(s) ({warned} with warnings)")


@app.command("disable")
def disable(
    domain: str = typer.Argument(..., help="Domain whose site link should be removed"),
    dry_run: bool = typer.Option(False, "--dry-run"),
) -> None:
    """Remove the enabled-site link for DOMAIN and reload nginx."""
    identifier = utils.normalize_domain(domain)
    if not identifier:
        raise typer.BadParameter("DOMAIN is required")
    layout = _layout()
    link = layout.link_path(identifier)
    if not (link.is_symlink() or link.exists()):
        raise typer.BadParameter(f"Site not enabled: {identifier}")
    if dry_run:
        print_json({"action": "disable", "link": str(link)})
        return

    ensure_root()
    sites.deactivate(layout, identifier)
    service = ServiceManager(build_runner(), ConfigManager.tools())
    reload = service.reload()
    if not reload.ok:
        logger.warning("Reloading nginx failed: %s", reload.output)
    typer.echo(f"Disabled {identifier}")
