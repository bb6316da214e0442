from __future__ import annotations

import pytest

from revproxy_cli.models import CertificatePaths, SiteRequest, TlsMode
from revproxy_cli.utils import normalize_domain, parse_port


@pytest.mark.parametrize(
    "inp,expected",
    [
        ("Example.COM", "example.com"),
        ("a.com", "a.com"),
        ("my_site!.org", "mysite.org"),
        (" sub-domain.Example.net ", "sub-domain.example.net"),
        ("", ""),
    ],
)
def test_normalize_domain(inp, expected):
    assert normalize_domain(inp) == expected


@pytest.mark.parametrize("value", ["Example.COM", "weird_Ünïcode.de", "a/b\\c.org", "xn--bcher-kva.example"])
def test_normalize_domain_is_idempotent(value):
    once = normalize_domain(value)
    assert normalize_domain(once) == once


@pytest.mark.parametrize(
    "domain",
    [
        "example.com other.org",
        "a.com;\n    return 200 pwned;\n#",
        "a.com\tb.com",
        "a.com{",
        "a.com}",
        "a.com#x",
        "a'.com",
        'a".com',
        "a\\.com",
        "a.com\x00",
    ],
)
def test_site_request_rejects_directive_breaking_domains(domain):
    with pytest.raises(ValueError, match="not allowed in server_name"):
        SiteRequest(domain)


def test_site_request_from_json_rejects_injected_domain() -> None:
    with pytest.raises(ValueError, match="not allowed in server_name"):
        SiteRequest.from_json({"domain": "a.com; return 200 x", "port": 8080})


def test_normalization_collides_without_detection() -> None:
    assert SiteRequest("A.com").identifier == SiteRequest("a.com").identifier


@pytest.mark.parametrize(
    "raw,expected",
    [
        (None, TlsMode.NONE),
        ("", TlsMode.NONE),
        ("none", TlsMode.NONE),
        ("false", TlsMode.NONE),
        ("self", TlsMode.LOCAL),
        ("true", TlsMode.LOCAL),
        ("TRUE", TlsMode.LOCAL),
        ("letsencrypt", TlsMode.DELEGATED),
        ("le", TlsMode.DELEGATED),
        (TlsMode.DELEGATED, TlsMode.DELEGATED),
    ],
)
def test_tls_mode_parse(raw, expected):
    assert TlsMode.parse(raw) is expected


@pytest.mark.parametrize("raw", ["acme", "yes", "no", "on", "off"])
def test_tls_mode_parse_rejects_unknown(raw) -> None:
    with pytest.raises(ValueError, match="Unknown TLS mode"):
        TlsMode.parse(raw)


def test_site_request_from_values_defaults() -> None:
    request = SiteRequest.from_values("Site.org")
    assert request.backend_port == 8080
    assert request.tls_mode is TlsMode.NONE
    assert request.identifier == "site.org"
    assert request.backend_url == "http://127.0.0.1:8080"


@pytest.mark.parametrize("port", ["0", "65536", "http", "-1"])
def test_site_request_rejects_bad_port(port):
    with pytest.raises(ValueError):
        SiteRequest.from_values("site.org", port)


def test_site_request_rejects_empty_domain() -> None:
    with pytest.raises(ValueError, match="domain is required"):
        SiteRequest.from_values("  ")
    with pytest.raises(ValueError, match="no usable characters"):
        SiteRequest.from_values("!!!")


def test_site_request_from_json_accepts_aliases() -> None:
    request = SiteRequest.from_json({"domain": "a.example", "port": "9000", "ssl": "le"})
    assert request.backend_port == 9000
    assert request.tls_mode is TlsMode.DELEGATED


def test_parse_port_bounds() -> None:
    assert parse_port("65535", field="port") == 65535
    with pytest.raises(ValueError, match="Missing port"):
        parse_port(None, field="port")


def test_certificate_path_conventions(layout) -> None:
    local = CertificatePaths.local(layout, "site.org")
    assert local.certificate == layout.ssl_cert_dir / "site.org.crt"
    assert local.key == layout.ssl_key_dir / "site.org.key"

    delegated = CertificatePaths.delegated(layout, "site.org")
    assert delegated.certificate == layout.letsencrypt_live_dir / "site.org" / "fullchain.pem"
    assert delegated.key == layout.letsencrypt_live_dir / "site.org" / "privkey.pem"
