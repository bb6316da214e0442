from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

import typer

from .configmanager import ConfigManager
from .errors import PrivilegeError
from .models import SiteRequest
from .network import NetworkClient
from .system import CommandRunner, require_root


def load_config_callback(value: str | None) -> str | None:
    """Eager callback to load env file before other options are processed."""
    ConfigManager.load_dotenv(value)
    return value


def print_json(value: Any) -> None:
    import json

    print(json.dumps(value, ensure_ascii=False, sort_keys=True, indent=2))


def build_request(domain: str, backend_port: str, tls_mode: str) -> SiteRequest:
    try:
        return SiteRequest.from_values(domain, backend_port, tls_mode)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from None


def ensure_root() -> None:
    try:
        require_root()
    except PrivilegeError as e:
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(code=1) from None


def build_runner() -> CommandRunner:
    return CommandRunner()


@contextmanager
def network_context() -> Generator[NetworkClient, None, None]:
    """Create the NetworkClient with consistent behavior across commands."""
    try:
        timeout = ConfigManager.http_timeout()
    except ValueError as e:
        raise typer.BadParameter(str(e)) from None
    with NetworkClient(lookup_urls=ConfigManager.ip_lookup_urls(), timeout_s=timeout) as network:
        yield network
