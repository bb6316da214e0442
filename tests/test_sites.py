from __future__ import annotations

from revproxy_cli.models import SiteRequest
from revproxy_cli.sites import (
    activate,
    atomic_write_text,
    check_panel_site,
    deactivate,
    find_server_name_conflicts,
    write_document,
)


def test_write_document_uses_identifier(layout) -> None:
    path = write_document(layout, SiteRequest("Site.ORG"), "server {}\n")

    assert path == layout.sites_available / "site.org"
    assert path.read_text(encoding="utf-8") == "server {}\n"


def test_atomic_write_replaces_content(tmp_path) -> None:
    path = tmp_path / "nested" / "file.conf"
    atomic_write_text(path, "one")
    atomic_write_text(path, "two")

    assert path.read_text(encoding="utf-8") == "two"
    assert [p.name for p in path.parent.iterdir()] == ["file.conf"]


def test_activate_is_idempotent(layout) -> None:
    request = SiteRequest("site.org")
    document = write_document(layout, request, "# v1\n")

    assert activate(layout, request) is False
    link = layout.sites_enabled / "site.org"
    assert link.is_symlink()
    assert link.resolve() == document.resolve()

    assert activate(layout, request) is True
    assert link.is_symlink()
    assert link.resolve() == document.resolve()
    assert link.read_text(encoding="utf-8") == "# v1\n"


def test_activate_replaces_stale_link(layout, tmp_path) -> None:
    request = SiteRequest("site.org")
    document = write_document(layout, request, "# current\n")
    layout.sites_enabled.mkdir(parents=True)
    (layout.sites_enabled / "site.org").symlink_to(tmp_path / "gone")

    assert activate(layout, request) is True
    assert (layout.sites_enabled / "site.org").resolve() == document.resolve()


def test_deactivate(layout) -> None:
    request = SiteRequest("site.org")
    write_document(layout, request, "# x\n")
    activate(layout, request)

    assert deactivate(layout, "site.org") is True
    assert not (layout.sites_enabled / "site.org").exists()
    assert deactivate(layout, "site.org") is False


def test_server_name_conflicts_ignore_own_site(layout) -> None:
    request = SiteRequest("site.org")
    layout.sites_enabled.mkdir(parents=True)
    (layout.sites_enabled / "site.org").write_text("server_name site.org www.site.org;\n", encoding="utf-8")
    (layout.sites_enabled / "legacy").write_text(
        "server {\n    server_name www.site.org;\n}\n", encoding="utf-8"
    )
    (layout.sites_enabled / "other").write_text("server_name notsite.org;\n", encoding="utf-8")

    conflicts = find_server_name_conflicts(layout, request)

    assert len(conflicts) == 1
    assert "legacy" in conflicts[0]
    assert "server_name www.site.org;" in conflicts[0]


def test_server_name_conflicts_without_enabled_dir(layout) -> None:
    assert find_server_name_conflicts(layout, SiteRequest("site.org")) == []


def test_panel_site_checks(layout) -> None:
    warnings = check_panel_site(layout, "site.org")
    assert len(warnings) == 2
    assert "site directory not found" in warnings[0]

    site_dir = layout.webroot_dir / "site.org"
    site_dir.mkdir(parents=True)
    assert check_panel_site(layout, "site.org") == [f"No index.php or index.html found in {site_dir}"]

    (site_dir / "index.php").write_text("<?php\n", encoding="utf-8")
    assert check_panel_site(layout, "site.org") == []
