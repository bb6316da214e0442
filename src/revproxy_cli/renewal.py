from __future__ import annotations

import logging

from .configmanager import DEFAULT_RENEWAL_SCHEDULE, ToolPaths
from .system import CommandRunner

logger = logging.getLogger(__name__)

RENEWAL_MARKER = "certbot renew"


def renewal_line(
    tools: ToolPaths,
    schedule: str = DEFAULT_RENEWAL_SCHEDULE,
    *,
    located: str | None = None,
) -> str:
    """Cron line for renewal; certbot is always given by absolute path."""
    if tools.certbot.startswith("/"):
        certbot = tools.certbot
    else:
        certbot = located or f"/usr/bin/{tools.certbot}"
    return f"{schedule} {certbot} renew --quiet --post-hook '{tools.systemctl} reload {tools.service_name}'"


def ensure_renewal_job(runner: CommandRunner, tools: ToolPaths, *, schedule: str = DEFAULT_RENEWAL_SCHEDULE) -> bool:
    """Add a certbot renewal cron entry unless one is already present.

    Returns True if the crontab was changed.
    """
    existing = ""
    listed = runner.run([tools.crontab, "-l"])
    if listed.ok:
        existing = listed.stdout
    elif listed.returncode != 1:
        # crontab -l exits 1 when the user has no crontab yet.
        logger.warning("Could not inspect current crontab (exit %s)", listed.returncode)

    if any(RENEWAL_MARKER in line for line in existing.splitlines()):
        logger.info("Auto-renewal already configured")
        return False

    new_cron = existing
    if new_cron and not new_cron.endswith("\n"):
        new_cron += "\n"
    new_cron += renewal_line(tools, schedule, located=runner.which(tools.certbot)) + "\n"

    runner.check([tools.crontab, "-"], input_text=new_cron)
    logger.info("Auto-renewal cron job added")
    return True
