"""Shared test helpers: a fake WordPress tree and a fake WordPress.org.

``build_site`` writes a small but realistic installation (core files, a
bundled theme, a WordPress.org plugin, a third-party plugin and the usual
user-controlled files). ``FakeOrg`` answers the three checksum endpoints
through an ``httpx.MockTransport`` from in-memory tables, and records
every request it sees.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Any, Callable

import httpx
from click.testing import Result

from wpfortify.manifest.fetcher import ManifestFetcher
from wpfortify.manifest.http_client import build_client

WP_VERSION = "6.4.2"

CORE_FILES: dict[str, str] = {
    "index.php": "<?php\n// Front to the WordPress application.\n",
    "wp-login.php": "<?php\n// Login screen.\n",
    "wp-includes/version.php": f"<?php\n$wp_version = '{WP_VERSION}';\n$wp_db_version = 56657;\n",
    "wp-includes/load.php": "<?php\n// Bootstrap helpers.\n",
    "wp-admin/admin.php": "<?php\n// Administration bootstrap.\n",
    "wp-content/index.php": "<?php\n// Silence is golden.\n",
}

BUNDLED_THEME_FILES: dict[str, str] = {
    "wp-content/themes/twentytwentyfour/style.css": (
        "/*\nTheme Name: Twenty Twenty-Four\nVersion: 1.0\nText Domain: twentytwentyfour\n*/\n"
    ),
    "wp-content/themes/twentytwentyfour/functions.php": "<?php\n// Theme setup.\n",
}

PLUGIN_FILES: dict[str, str] = {
    "wp-content/plugins/hello-dolly/hello.php": (
        "<?php\n/*\nPlugin Name: Hello Dolly\nVersion: 1.7.2\nText Domain: hello-dolly\n*/\n"
    ),
    "wp-content/plugins/hello-dolly/readme.txt": "=== Hello Dolly ===\n",
}

THIRD_PARTY_FILES: dict[str, str] = {
    "wp-content/plugins/custom/custom.php": (
        "<?php\n/*\nPlugin Name: Custom Tools\nVersion: 2.0\n"
        "Update URI: https://example.com/custom\n*/\n"
    ),
}

USER_FILES: dict[str, str] = {
    "wp-config.php": "<?php\ndefine('DB_NAME', 'wp');\n",
    "wp-content/uploads/2024/01/photo.jpg": "not really a jpeg",
}


def md5(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def write_files(root: Path, files: dict[str, str]) -> None:
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


def build_site(root: Path) -> Path:
    """Write the fake installation under ``root`` and return it."""
    for files in (CORE_FILES, BUNDLED_THEME_FILES, PLUGIN_FILES, THIRD_PARTY_FILES, USER_FILES):
        write_files(root, files)
    return root


def core_manifest() -> dict[str, str]:
    """Core checksums as WordPress.org would publish them for the fake site.

    Includes bundled-theme entries and an excluded plugin entry, like the
    real core manifest does.
    """
    manifest = {path: md5(content) for path, content in CORE_FILES.items()}
    manifest.update({path: md5(content) for path, content in BUNDLED_THEME_FILES.items()})
    manifest["wp-content/plugins/akismet/akismet.php"] = md5("akismet")
    return manifest


def plugin_files_payload(prefix: str = "") -> dict[str, dict[str, str]]:
    """``files`` object of the plugin checksum endpoint for Hello Dolly."""
    base = "wp-content/plugins/hello-dolly/"
    return {
        prefix + path[len(base):]: {"md5": md5(content), "sha256": sha256(content)}
        for path, content in PLUGIN_FILES.items()
    }


def theme_manifest() -> dict[str, str]:
    base = "wp-content/themes/twentytwentyfour/"
    return {path[len(base):]: md5(content) for path, content in BUNDLED_THEME_FILES.items()}


class FakeOrg:
    """In-memory stand-in for the WordPress.org checksum endpoints.

    Attributes:
        core: ``{(version, locale): checksums}``; a missing key answers
            ``{"checksums": false}`` like the real API.
        core_errors: ``{(version, locale): message}`` answered as
            ``{"error": message}``.
        plugins: ``{(slug, version): files}``; a missing key answers 404.
        themes: ``{(slug, version): checksums}``.
        failing_hosts: Hosts whose requests raise a connection error.
        requests: Every request received, in order.
    """

    def __init__(self) -> None:
        self.core: dict[tuple[str, str], dict[str, str]] = {}
        self.core_errors: dict[tuple[str, str], str] = {}
        self.plugins: dict[tuple[str, str], dict[str, Any]] = {}
        self.themes: dict[tuple[str, str], dict[str, str]] = {}
        self.failing_hosts: set[str] = set()
        self.requests: list[httpx.Request] = []

    @classmethod
    def for_site(cls) -> FakeOrg:
        org = cls()
        org.core[(WP_VERSION, "en_US")] = core_manifest()
        org.plugins[("hello-dolly", "1.7.2")] = plugin_files_payload()
        org.themes[("twentytwentyfour", "1.0")] = theme_manifest()
        return org

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        path = request.url.path
        if host in self.failing_hosts:
            raise httpx.ConnectError("connection refused", request=request)

        if host == "api.wordpress.org" and path == "/core/checksums/1.0/":
            key = (request.url.params.get("version", ""), request.url.params.get("locale", ""))
            if key in self.core_errors:
                return httpx.Response(200, json={"error": self.core_errors[key]})
            if key in self.core:
                return httpx.Response(200, json={"checksums": self.core[key]})
            return httpx.Response(200, json={"checksums": False})

        if host == "downloads.wordpress.org" and path.startswith("/plugin-checksums/"):
            slug, _, filename = path[len("/plugin-checksums/"):].partition("/")
            key = (slug, filename.removesuffix(".json"))
            if key in self.plugins:
                return httpx.Response(200, json={"plugin": slug, "version": key[1], "files": self.plugins[key]})
            return httpx.Response(404, json={"code": "not_found"})

        if host == "api.wordpress.org" and path.startswith("/themes/checksums/1.0/"):
            slug, _, version = path[len("/themes/checksums/1.0/"):].partition("/")
            if (slug, version) in self.themes:
                return httpx.Response(
                    200, json={"checksums": self.themes[(slug, version)], "checksum_type": "md5"},
                )
            return httpx.Response(200, json={"error": "Theme checksums not found."})

        return httpx.Response(404)

    def client(self) -> httpx.Client:
        return build_client(transport=httpx.MockTransport(self.handler))

    def fetcher(self) -> ManifestFetcher:
        return ManifestFetcher(self.client())

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


# ``wpf("scan", ...)`` style invoker provided by the CLI test fixtures.
Invoke = Callable[..., Result]
