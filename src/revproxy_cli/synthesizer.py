"""Render nginx server blocks that reverse-proxy a domain to a local backend."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from .configmanager import SiteLayout
from .models import CertificatePaths, SiteRequest
from .sites import atomic_write_text

logger = logging.getLogger(__name__)

HEADER_TEMPLATE = """# Reverse proxy configuration for {domain}
# Generated on {generated_at}
# Backend: 127.0.0.1:{port}
"""

HTTP_BLOCK_TEMPLATE = """
server {{
    listen 80;
    server_name {domain} www.{domain};

    # Logging
    access_log {access_log};
    error_log {error_log};

    # Security headers
    add_header X-Frame-Options "SAMEORIGIN" always;
    add_header X-XSS-Protection "1; mode=block" always;
    add_header X-Content-Type-Options "nosniff" always;
"""

REDIRECT_TAIL = """
    # Redirect HTTP to HTTPS
    return 301 https://$server_name$request_uri;
}
"""

TLS_BLOCK_TEMPLATE = """
# HTTPS configuration
server {{
    listen 443 ssl http2;
    server_name {domain} www.{domain};

    # SSL Configuration
    ssl_certificate {certificate};
    ssl_certificate_key {key};

    # SSL Security settings
    ssl_protocols TLSv1.2 TLSv1.3;
    ssl_ciphers ECDHE-RSA-AES128-GCM-SHA256:ECDHE-RSA-AES256-GCM-SHA384:ECDHE-RSA-CHACHA20-POLY1305;
    ssl_prefer_server_ciphers off;
    ssl_session_cache shared:SSL:10m;
    ssl_session_timeout 10m;

    # HSTS
    add_header Strict-Transport-Security "max-age=63072000; includeSubDomains; preload" always;
    add_header X-Frame-Options "SAMEORIGIN" always;
    add_header X-XSS-Protection "1; mode=block" always;
    add_header X-Content-Type-Options "nosniff" always;

    # Logging
    access_log {access_log};
    error_log {error_log};
"""

SHARED_PROXY_RULES_TEMPLATE = """
    # Main proxy location
    location / {{
        proxy_pass {backend};

        proxy_set_header Host $host;
        proxy_set_header X-Real-IP $remote_addr;
        proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
        proxy_set_header X-Forwarded-Proto $scheme;
        proxy_set_header X-Forwarded-Host $host;
        proxy_set_header X-Forwarded-Port $server_port;
        proxy_set_header X-Original-URI $request_uri;

        proxy_connect_timeout 60s;
        proxy_send_timeout 60s;
        proxy_read_timeout 60s;

        proxy_buffering on;
        proxy_buffer_size 8k;
        proxy_buffers 16 8k;
        proxy_busy_buffers_size 16k;

        # Rewrite backend redirects to the public host
        proxy_redirect {backend}/ $scheme://$host/;
        proxy_redirect {backend} $scheme://$host;

        # WebSocket upgrade
        proxy_http_version 1.1;
        proxy_set_header Upgrade $http_upgrade;
        proxy_set_header Connection "upgrade";

        proxy_ssl_server_name on;
    }}

    # Static assets
    location ~* \\.(css|js|png|jpg|jpeg|gif|ico|svg|woff|woff2|ttf|eot|pdf|zip|tar|gz|webp|avif)$ {{
        proxy_pass {backend};
        proxy_set_header Host $host;
        expires 1y;
        add_header Cache-Control "public, immutable";
        add_header X-Served-By "nginx-proxy";
    }}

    # Admin and login areas get longer timeouts
    location ~ ^/(wp-admin|wp-login|admin|dashboard|xmlrpc\\.php) {{
        proxy_pass {backend};
        proxy_set_header Host $host;
        proxy_set_header X-Real-IP $remote_addr;
        proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
        proxy_set_header X-Forwarded-Proto $scheme;

        proxy_connect_timeout 300s;
        proxy_send_timeout 300s;
        proxy_read_timeout 300s;
    }}

    # Block access to sensitive dotfiles
    location ~ /\\.(ht|env|git) {{
        deny all;
        return 404;
    }}

    location ~ \\.php$ {{
        proxy_pass {backend};
        proxy_set_header Host $host;
        proxy_set_header X-Real-IP $remote_addr;
        proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
        proxy_set_header X-Forwarded-Proto $scheme;
    }}
}}
"""


@dataclass(frozen=True)
class ServerBlockDocument:
    """An nginx site document as ordered fragments.

    The shared proxy rules close whichever block carries them: the plain
    block when TLS is off, the TLS block otherwise.
    """

    header: str
    http_block: str
    shared_proxy_rules: str
    tls_block: str | None = None

    def render(self) -> str:
        return "".join([self.header, self.http_block, self.tls_block or "", self.shared_proxy_rules])


def render_shared_proxy_rules(backend_port: int) -> str:
    return SHARED_PROXY_RULES_TEMPLATE.format(backend=f"http://127.0.0.1:{backend_port}")


def synthesize(
    request: SiteRequest,
    layout: SiteLayout,
    *,
    generated_at: datetime | None = None,
) -> ServerBlockDocument:
    identifier = request.identifier
    stamp = (generated_at or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
    access_log, error_log = layout.log_paths(identifier)

    header = HEADER_TEMPLATE.format(domain=request.domain, generated_at=stamp, port=request.backend_port)
    http_block = HTTP_BLOCK_TEMPLATE.format(
        domain=request.domain,
        access_log=access_log,
        error_log=error_log,
    )
    shared = render_shared_proxy_rules(request.backend_port)

    if not request.tls_mode.enabled:
        logger.debug("Synthesized plain HTTP document for %s", identifier)
        return ServerBlockDocument(header=header, http_block=http_block, shared_proxy_rules=shared)

    # Certificate paths start at the local convention; delegated issuance rewrites them later.
    paths = CertificatePaths.local(layout, identifier)
    ssl_access_log, ssl_error_log = layout.log_paths(identifier, tls=True)
    tls_block = TLS_BLOCK_TEMPLATE.format(
        domain=request.domain,
        certificate=paths.certificate,
        key=paths.key,
        access_log=ssl_access_log,
        error_log=ssl_error_log,
    )
    logger.debug("Synthesized HTTP redirect + TLS document for %s", identifier)
    return ServerBlockDocument(
        header=header,
        http_block=http_block + REDIRECT_TAIL,
        tls_block=tls_block,
        shared_proxy_rules=shared,
    )


def rewrite_certificate_paths(path: Path, old: CertificatePaths, new: CertificatePaths) -> None:
    """Point an already-written document at a different certificate pair."""
    text = path.read_text(encoding="utf-8")
    text = text.replace(str(old.certificate), str(new.certificate))
    text = text.replace(str(old.key), str(new.key))
    atomic_write_text(path, text)
    logger.info("Updated certificate paths in %s to %s", path, new.certificate.parent)
