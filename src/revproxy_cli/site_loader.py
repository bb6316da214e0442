from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from .models import SiteRequest


def load_site_requests(path: Path) -> list[SiteRequest]:
    """Read site declarations from a YAML file.

    Accepts either a single mapping (`domain: ...`) or a `sites:` list of them.
    Keys: domain, backend_port (or port), tls_mode (or tls / ssl).
    """
    try:
        payload = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    return parse_site_requests(payload)


def parse_site_requests(payload: Any) -> list[SiteRequest]:
    if isinstance(payload, Mapping) and "sites" in payload:
        entries = payload.get("sites")
    elif isinstance(payload, Mapping):
        entries = [payload]
    else:
        entries = payload

    if not isinstance(entries, list) or not entries:
        raise ValueError("YAML file must contain a site mapping or a non-empty `sites` list")

    requests: list[SiteRequest] = []
    for i, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            raise ValueError(f"sites[{i}] must be a mapping")
        try:
            requests.append(SiteRequest.from_json(entry))
        except ValueError as e:
            raise ValueError(f"sites[{i}]: {e}") from e
    return requests
