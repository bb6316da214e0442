from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path

import pytest

from revproxy_cli.configmanager import SiteLayout, ToolPaths
from revproxy_cli.system import CommandResult, CommandRunner


class FakeRunner(CommandRunner):
    """Records commands instead of running them.

    `fail` holds command prefixes ("certbot", "nginx -t") that exit 1.
    openssl calls that succeed create the key and certificate files.
    """

    def __init__(
        self,
        *,
        fail: Iterable[str] = (),
        missing: Iterable[str] = (),
        crontab: str | None = None,
        raise_on: str | None = None,
    ) -> None:
        self.calls: list[tuple[str, ...]] = []
        self.fail = set(fail)
        self.missing = set(missing)
        self.crontab = crontab
        self.raise_on = raise_on
        self.service_running = True

    def _fails(self, args: tuple[str, ...]) -> bool:
        line = " ".join(args)
        return any(line.startswith(prefix) for prefix in self.fail)

    def run(self, argv: Sequence[str], *, input_text: str | None = None) -> CommandResult:
        args = tuple(str(a) for a in argv)
        self.calls.append(args)
        if self.raise_on and " ".join(args).startswith(self.raise_on):
            raise RuntimeError(f"boom: {self.raise_on}")
        if self._fails(args):
            return CommandResult(args, 1, "", f"{args[0]} failed")

        if args[0] == "systemctl" and args[1] == "stop":
            self.service_running = False
        elif args[0] == "systemctl" and args[1] == "start":
            self.service_running = True
        elif args[0] == "crontab" and args[1] == "-l":
            if self.crontab is None:
                return CommandResult(args, 1, "", "no crontab for root")
            return CommandResult(args, 0, self.crontab, "")
        elif args[0] == "crontab" and args[1] == "-":
            self.crontab = input_text
        elif args[0] == "openssl":
            for flag in ("-keyout", "-out"):
                target = Path(args[args.index(flag) + 1])
                target.write_text(f"fake {flag}\n", encoding="utf-8")
        return CommandResult(args, 0, "", "")

    def which(self, name: str) -> str | None:
        return None if name in self.missing else f"/usr/bin/{name}"

    def programs(self) -> list[str]:
        return [" ".join(c[:2]) for c in self.calls]

    def find(self, program: str) -> tuple[str, ...]:
        for call in self.calls:
            if call[0] == program:
                return call
        raise AssertionError(f"{program} was not called; calls={self.calls}")


class FakeNetwork:
    def __init__(
        self,
        *,
        public: str | None = "203.0.113.10",
        resolved: str | None = "203.0.113.10",
        listening: bool = True,
        status: int | None = 200,
    ) -> None:
        self.public = public
        self.resolved = resolved
        self.listening = listening
        self.status = status
        self.resolved_domains: list[str] = []
        self.status_hosts: list[str | None] = []

    def public_address(self) -> str | None:
        return self.public

    def resolve_address(self, domain: str) -> str | None:
        self.resolved_domains.append(domain)
        return self.resolved

    def backend_listening(self, port: int) -> bool:  # noqa: ARG002
        return self.listening

    def backend_status(self, port: int, *, host_header: str | None = None) -> int | None:  # noqa: ARG002
        self.status_hosts.append(host_header)
        return self.status

    def close(self) -> None:
        return None

    def __enter__(self) -> FakeNetwork:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[no-untyped-def]
        self.close()


@pytest.fixture
def layout(tmp_path: Path) -> SiteLayout:
    return SiteLayout(
        sites_available=tmp_path / "sites-available",
        sites_enabled=tmp_path / "sites-enabled",
        log_dir=tmp_path / "log",
        ssl_cert_dir=tmp_path / "ssl" / "certs",
        ssl_key_dir=tmp_path / "ssl" / "private",
        letsencrypt_live_dir=tmp_path / "letsencrypt" / "live",
        webroot_dir=tmp_path / "wwwroot",
    )


@pytest.fixture
def tools() -> ToolPaths:
    return ToolPaths()


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def network() -> FakeNetwork:
    return FakeNetwork()


@pytest.fixture
def layout_env(layout: SiteLayout, monkeypatch: pytest.MonkeyPatch) -> SiteLayout:
    monkeypatch.setenv("REVPROXY_SITES_AVAILABLE", str(layout.sites_available))
    monkeypatch.setenv("REVPROXY_SITES_ENABLED", str(layout.sites_enabled))
    monkeypatch.setenv("REVPROXY_LOG_DIR", str(layout.log_dir))
    monkeypatch.setenv("REVPROXY_SSL_CERT_DIR", str(layout.ssl_cert_dir))
    monkeypatch.setenv("REVPROXY_SSL_KEY_DIR", str(layout.ssl_key_dir))
    monkeypatch.setenv("REVPROXY_LETSENCRYPT_LIVE_DIR", str(layout.letsencrypt_live_dir))
    monkeypatch.setenv("REVPROXY_WEBROOT_DIR", str(layout.webroot_dir))
    return layout
