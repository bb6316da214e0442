from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path

DEFAULT_ENV_FILE = ".env"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FILE_NAME = "revproxy.log"
DEFAULT_HTTP_TIMEOUT = 10.0
DEFAULT_IP_LOOKUP_URLS = ("https://ifconfig.me/ip", "https://api.ipify.org")
DEFAULT_RENEWAL_SCHEDULE = "0 12 * * *"


@dataclass(frozen=True)
class SiteLayout:
    """Filesystem locations shared by the synthesizer, provisioner and site helpers."""

    sites_available: Path = Path("/etc/nginx/sites-available")
    sites_enabled: Path = Path("/etc/nginx/sites-enabled")
    log_dir: Path = Path("/var/log/nginx")
    ssl_cert_dir: Path = Path("/etc/ssl/certs")
    ssl_key_dir: Path = Path("/etc/ssl/private")
    letsencrypt_live_dir: Path = Path("/etc/letsencrypt/live")
    webroot_dir: Path = Path("/www/wwwroot")

    def document_path(self, identifier: str) -> Path:
        return self.sites_available / identifier

    def link_path(self, identifier: str) -> Path:
        return self.sites_enabled / identifier

    def log_paths(self, identifier: str, *, tls: bool = False) -> tuple[Path, Path]:
        stem = f"{identifier}.ssl" if tls else identifier
        return self.log_dir / f"{stem}.access.log", self.log_dir / f"{stem}.error.log"


@dataclass(frozen=True)
class ToolPaths:
    nginx: str = "nginx"
    certbot: str = "certbot"
    openssl: str = "openssl"
    systemctl: str = "systemctl"
    crontab: str = "crontab"
    service_name: str = "nginx"


class ConfigManager:
    """Centralized configuration.

    - Loads `.env` (or `REVPROXY_ENV_FILE`) best-effort via python-dotenv.
    - Reads runtime config from environment variables.
    - Assigns project defaults consistently.
    """

    @staticmethod
    def _env_str(name: str) -> str | None:
        v = os.getenv(name)
        return v.strip() if v and v.strip() else None

    @staticmethod
    def _env_path(name: str, default: Path) -> Path:
        v = ConfigManager._env_str(name)
        return Path(os.path.expanduser(v)) if v else default

    @staticmethod
    def load_dotenv(path: str | None = None) -> None:
        """Load env file into process env.

        Best-effort: missing python-dotenv or missing file does not break the CLI.
        """
        try:
            from dotenv import load_dotenv  # type: ignore[import-not-found]

            load_dotenv(dotenv_path=path or os.getenv("REVPROXY_ENV_FILE") or DEFAULT_ENV_FILE)
        except Exception:
            return

    @staticmethod
    def layout() -> SiteLayout:
        d = SiteLayout()
        return SiteLayout(
            sites_available=ConfigManager._env_path("REVPROXY_SITES_AVAILABLE", d.sites_available),
            sites_enabled=ConfigManager._env_path("REVPROXY_SITES_ENABLED", d.sites_enabled),
            log_dir=ConfigManager._env_path("REVPROXY_LOG_DIR", d.log_dir),
            ssl_cert_dir=ConfigManager._env_path("REVPROXY_SSL_CERT_DIR", d.ssl_cert_dir),
            ssl_key_dir=ConfigManager._env_path("REVPROXY_SSL_KEY_DIR", d.ssl_key_dir),
            letsencrypt_live_dir=ConfigManager._env_path("REVPROXY_LETSENCRYPT_LIVE_DIR", d.letsencrypt_live_dir),
            webroot_dir=ConfigManager._env_path("REVPROXY_WEBROOT_DIR", d.webroot_dir),
        )

    @staticmethod
    def tools() -> ToolPaths:
        d = ToolPaths()
        return ToolPaths(
            nginx=ConfigManager._env_str("REVPROXY_NGINX_BIN") or d.nginx,
            certbot=ConfigManager._env_str("REVPROXY_CERTBOT_BIN") or d.certbot,
            openssl=ConfigManager._env_str("REVPROXY_OPENSSL_BIN") or d.openssl,
            service_name=ConfigManager._env_str("REVPROXY_SERVICE_NAME") or d.service_name,
        )

    @staticmethod
    def ip_lookup_urls() -> tuple[str, ...]:
        raw = ConfigManager._env_str("REVPROXY_IP_LOOKUP_URLS")
        if not raw:
            return DEFAULT_IP_LOOKUP_URLS
        urls = tuple(u.strip() for u in raw.split(",") if u.strip())
        return urls or DEFAULT_IP_LOOKUP_URLS

    @staticmethod
    def http_timeout() -> float:
        """Timeout in seconds for address lookups and backend probes."""
        raw = ConfigManager._env_str("REVPROXY_HTTP_TIMEOUT")
        if raw is None:
            return DEFAULT_HTTP_TIMEOUT
        try:
            v = float(raw)
        except Exception as e:
            raise ValueError("REVPROXY_HTTP_TIMEOUT must be a number") from e
        if v <= 0:
            raise ValueError("REVPROXY_HTTP_TIMEOUT must be > 0")
        return v

    @staticmethod
    def renewal_schedule() -> str:
        raw = ConfigManager._env_str("REVPROXY_RENEWAL_SCHEDULE")
        if raw is None:
            return DEFAULT_RENEWAL_SCHEDULE
        if len(raw.split()) != 5:
            raise ValueError("REVPROXY_RENEWAL_SCHEDULE must have five cron fields")
        return raw

    @staticmethod
    def _parse_log_level(level: str) -> int:
        normalized = (level or DEFAULT_LOG_LEVEL).strip().upper()
        try:
            logging_level = getattr(logging, normalized)
            if not isinstance(logging_level, int):
                raise AttributeError
        except Exception as e:
            raise ValueError("log_level must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL") from e
        return logging_level

    @staticmethod
    def _resolve_log_file_path(value: str | os.PathLike[str] | None) -> Path | None:
        if value is None:
            return None
        raw = str(value).strip()
        if not raw:
            return None

        p = Path(os.path.expanduser(raw))
        # If a directory is provided, create a file within it.
        if p.exists() and p.is_dir():
            return p / DEFAULT_LOG_FILE_NAME
        if raw.endswith(("/", os.sep)):
            return p / DEFAULT_LOG_FILE_NAME
        return p

    @staticmethod
    def configure_logging(
        console_level: str,
        *,
        log_file: str | os.PathLike[str] | None = None,
        file_level: str | None = None,
    ) -> None:
        """Configure logging.

        Always logs to stderr so stdout stays clean for rendered documents.
        If log_file is set, also logs to that file with its own level.
        """

        console_logging_level = ConfigManager._parse_log_level(console_level)
        file_logging_level = (
            ConfigManager._parse_log_level(file_level) if (file_level is not None and str(file_level).strip()) else None
        )
        file_path = ConfigManager._resolve_log_file_path(log_file)

        console_formatter = logging.Formatter(
            "%(asctime)s %(levelname)s: %(message)s",
            datefmt="%H:%M:%S",
        )
        file_formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

        root = logging.getLogger()
        for h in list(root.handlers):
            root.removeHandler(h)

        min_level = console_logging_level
        if file_logging_level is not None:
            min_level = min(min_level, file_logging_level)

        root.setLevel(min_level)

        console_handler = logging.StreamHandler(stream=sys.stderr)
        console_handler.setLevel(console_logging_level)
        console_handler.setFormatter(console_formatter)
        root.addHandler(console_handler)

        if file_path is not None:
            try:
                file_path.parent.mkdir(parents=True, exist_ok=True)
                fh = logging.FileHandler(file_path, encoding="utf-8")
                fh.setLevel(file_logging_level if file_logging_level is not None else console_logging_level)
                fh.setFormatter(file_formatter)
                root.addHandler(fh)
            except Exception as e:
                root.warning("Failed to enable file logging to %s (%s)", file_path, str(e))

        # Keep noisy HTTP libs at WARNING or higher.
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
