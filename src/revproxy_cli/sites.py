from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from . import utils
from .configmanager import SiteLayout
from .models import SiteRequest

logger = logging.getLogger(__name__)

PANEL_INDEX_FILES = ("index.php", "index.html")


def atomic_write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(prefix=path.name + ".", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.chmod(tmp_path, 0o644)
        Path(tmp_path).replace(path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except Exception:
            pass
        raise


def write_document(layout: SiteLayout, request: SiteRequest, content: str) -> Path:
    path = layout.document_path(request.identifier)
    atomic_write_text(path, content)
    logger.info("Wrote %s", path)
    return path


def activate(layout: SiteLayout, request: SiteRequest) -> bool:
    """Point the enabled-site link at the current document.

    Returns True if an existing link was replaced.
    """
    target = layout.document_path(request.identifier)
    link = layout.link_path(request.identifier)
    link.parent.mkdir(parents=True, exist_ok=True)

    replaced = False
    if link.is_symlink() or link.exists():
        logger.warning("Site already enabled: %s", request.identifier)
        link.unlink()
        replaced = True
    link.symlink_to(target)
    logger.info("Site %s: %s", "re-enabled" if replaced else "enabled", request.identifier)
    return replaced


def deactivate(layout: SiteLayout, identifier: str) -> bool:
    link = layout.link_path(identifier)
    if not (link.is_symlink() or link.exists()):
        return False
    link.unlink()
    logger.info("Site disabled: %s", identifier)
    return True


def _server_names(line: str) -> list[str]:
    stripped = line.strip()
    if not stripped.startswith("server_name"):
        return []
    names = stripped[len("server_name") :].split(";", 1)[0]
    return [n.strip().lower() for n in names.split() if n.strip()]


def find_server_name_conflicts(layout: SiteLayout, request: SiteRequest) -> list[str]:
    """Return `file: line` entries of other enabled sites that claim this domain."""
    wanted = {request.domain.strip().lower(), utils.www_variant(request.domain.strip().lower())}
    own = layout.link_path(request.identifier).name
    conflicts: list[str] = []
    if not layout.sites_enabled.is_dir():
        return conflicts
    for entry in sorted(layout.sites_enabled.iterdir()):
        if entry.name == own:
            continue
        try:
            text = entry.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.debug("Skipping unreadable site %s (%s)", entry, str(e))
            continue
        for line in text.splitlines():
            if wanted.intersection(_server_names(line)):
                conflicts.append(f"{entry}: {line.strip()}")
    return conflicts


def check_panel_site(layout: SiteLayout, domain: str) -> list[str]:
    """Check the aaPanel site directory for the domain; returns warnings."""
    site_dir = layout.webroot_dir / domain
    if not site_dir.is_dir():
        return [
            f"aaPanel site directory not found: {site_dir}",
            f"Make sure to create the site in aaPanel with domain: {domain}",
        ]
    if not any((site_dir / name).is_file() for name in PANEL_INDEX_FILES):
        return [f"No index.php or index.html found in {site_dir}"]
    return []
