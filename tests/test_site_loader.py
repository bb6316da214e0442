from __future__ import annotations

import pytest

from revproxy_cli.models import TlsMode
from revproxy_cli.site_loader import load_site_requests, parse_site_requests


def test_single_mapping(tmp_path) -> None:
    path = tmp_path / "site.yaml"
    path.write_text("domain: Shop.Example\nbackend_port: 8088\ntls_mode: letsencrypt\n", encoding="utf-8")

    [request] = load_site_requests(path)

    assert request.domain == "Shop.Example"
    assert request.identifier == "shop.example"
    assert request.backend_port == 8088
    assert request.tls_mode is TlsMode.DELEGATED


def test_sites_list_defaults() -> None:
    requests = parse_site_requests({"sites": [{"domain": "a.example"}, {"domain": "b.example", "tls": True}]})

    assert [r.identifier for r in requests] == ["a.example", "b.example"]
    assert requests[0].backend_port == 8080
    assert requests[0].tls_mode is TlsMode.NONE
    assert requests[1].tls_mode is TlsMode.LOCAL


@pytest.mark.parametrize("payload", [None, [], {"sites": []}, "just text", {"sites": ["a.example"]}])
def test_rejects_malformed_payloads(payload) -> None:
    with pytest.raises(ValueError):
        parse_site_requests(payload)


def test_error_names_failing_entry() -> None:
    with pytest.raises(ValueError, match=r"sites\[1\]"):
        parse_site_requests({"sites": [{"domain": "ok.example"}, {"domain": "bad.example", "tls": "acme"}]})


def test_invalid_yaml_is_value_error(tmp_path) -> None:
    path = tmp_path / "broken.yaml"
    path.write_text("sites: [\n", encoding="utf-8")
    with pytest.raises(ValueError, match="Invalid YAML"):
        load_site_requests(path)
