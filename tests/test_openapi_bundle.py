"""Tests for the documentation site build.

``run_command`` is replaced with a fake redocly that writes the output
file, so the build flow runs without Node tooling.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from specops.config import ProjectPaths
from specops.openapi import (
    BuildError,
    build_site,
    discover_versions,
    fix_unresolved_references,
    render_index,
    scalar_config,
)
from specops.process import CommandError, CommandResult


def make_project(root: Path, *versions: str) -> ProjectPaths:
    paths = ProjectPaths(root)
    for version in versions:
        source = paths.apis_dir / version
        source.mkdir(parents=True)
        (source / "openapi.yaml").write_text(
            f"openapi: 3.0.0\ninfo:\n  version: {version}\n", encoding="utf-8"
        )
    return paths


class FakeRedocly:
    """Writes a bundle containing leftover refs; fails for chosen versions."""

    def __init__(self, fail: set[str] | None = None) -> None:
        self.fail = fail or set()
        self.calls: list[tuple[list[str], Path]] = []

    async def __call__(self, argv: list[str], *, cwd: Path, registry=None):
        self.calls.append((argv, Path(cwd)))
        command = " ".join(argv)
        version = Path(cwd).name
        if version in self.fail:
            raise CommandError(
                CommandResult(command, 1, stderr=f"[1] {version}: bundling failed")
            )
        output = Path(argv[argv.index("-o") + 1])
        output.write_text(
            "paths:\n"
            "  /v3/jobs:\n"
            "    $ref: ../components/schemas/Job.yaml\n"
            "  /v3/links:\n"
            "    $ref: ../components/schemas/Link.yaml\n",
            encoding="utf-8",
        )
        return CommandResult(command, 0, stdout=f"bundled {version}\n")


@pytest.fixture
def redocly(monkeypatch: pytest.MonkeyPatch) -> FakeRedocly:
    fake = FakeRedocly()
    monkeypatch.setattr("specops.openapi.bundle.run_command", fake)
    return fake


class TestDiscoverVersions:
    def test_sorted_directories_with_document(self, tmp_path: Path) -> None:
        paths = make_project(tmp_path, "latest", "3.195.0", "3.181.0")
        (paths.apis_dir / "empty").mkdir()
        (paths.apis_dir / "README.md").write_text("x", encoding="utf-8")

        assert discover_versions(paths.apis_dir) == ["3.181.0", "3.195.0", "latest"]

    def test_missing_directory(self, tmp_path: Path) -> None:
        assert discover_versions(tmp_path / "nope") == []


class TestIndex:
    def test_scalar_config(self) -> None:
        assert scalar_config("3.195.0") == {
            "title": "Cloud Foundry V3 (CAPI 3.195.0)",
            "slug": "cf-api-3.195.0",
            "url": "3.195.0/openapi.yaml",
        }
        assert scalar_config("latest")["default"] is True

    def test_render_index_embeds_all_versions(self) -> None:
        html = render_index(["3.195.0", "latest"])

        assert html.startswith("<!doctype html>")
        assert "https://cdn.jsdelivr.net/npm/@scalar/api-reference" in html
        start = html.index("createApiReference('#app', ") + len(
            "createApiReference('#app', "
        )
        end = html.index(")\n    </script>")
        configs = json.loads(html[start:end])
        assert [c["slug"] for c in configs] == ["cf-api-3.195.0", "cf-api-latest"]


class TestFixUnresolvedReferences:
    def test_rewrites_known_refs(self, tmp_path: Path) -> None:
        bundle = tmp_path / "openapi.yaml"
        bundle.write_text(
            "a:\n  $ref: ../components/schemas/Job.yaml\n"
            "b:\n  $ref: ../components/schemas/Link.yaml\n",
            encoding="utf-8",
        )

        assert fix_unresolved_references(bundle) is True
        assert bundle.read_text(encoding="utf-8") == (
            "a:\n  $ref: '#/components/schemas/Job'\n"
            "b:\n  $ref: '#/components/schemas/Link'\n"
        )

    def test_untouched_file(self, tmp_path: Path) -> None:
        bundle = tmp_path / "openapi.yaml"
        bundle.write_text("$ref: '#/components/schemas/App'\n", encoding="utf-8")

        assert fix_unresolved_references(bundle) is False
        assert bundle.read_text(encoding="utf-8") == "$ref: '#/components/schemas/App'\n"

    def test_missing_file_is_a_warning(self, tmp_path: Path, log_stream) -> None:
        assert fix_unresolved_references(tmp_path / "missing.yaml") is False
        assert "Failed to fix unresolved references" in log_stream.getvalue()


class TestBuildSite:
    @pytest.mark.asyncio
    async def test_builds_every_version(
        self, tmp_path: Path, redocly: FakeRedocly
    ) -> None:
        paths = make_project(tmp_path, "latest", "3.195.0")

        report = await build_site(paths)

        assert report.versions == ["3.195.0", "latest"]
        assert report.index_path == paths.dist_dir / "index.html"
        assert "cf-api-latest" in report.index_path.read_text(encoding="utf-8")
        for version in report.versions:
            bundled = (paths.dist_dir / version / "openapi.yaml").read_text(
                encoding="utf-8"
            )
            assert "../components" not in bundled

    @pytest.mark.asyncio
    async def test_redocly_invocation(
        self, tmp_path: Path, redocly: FakeRedocly
    ) -> None:
        paths = make_project(tmp_path, "latest")

        await build_site(paths)

        argv, cwd = redocly.calls[0]
        assert argv[:3] == ["redocly", "bundle", "openapi.yaml"]
        assert Path(argv[4]) == (paths.dist_dir / "latest" / "openapi.yaml").resolve()
        assert cwd == paths.apis_dir / "latest"

    @pytest.mark.asyncio
    async def test_failure_skips_index(
        self, tmp_path: Path, redocly: FakeRedocly, log_stream
    ) -> None:
        """A failed version fails the build after every version was attempted."""
        paths = make_project(tmp_path, "3.181.0", "3.195.0", "latest")
        redocly.fail = {"3.195.0"}

        with pytest.raises(BuildError) as exc_info:
            await build_site(paths)

        assert exc_info.value.failed_versions == ["3.195.0"]
        assert len(redocly.calls) == 3
        assert not (paths.dist_dir / "index.html").exists()
        output = log_stream.getvalue()
        assert "Command failed" in output
        assert 'command="redocly bundle openapi.yaml' in output
        assert "3.195.0: bundling failed" in output

    @pytest.mark.asyncio
    async def test_no_versions(self, tmp_path: Path, redocly: FakeRedocly) -> None:
        report = await build_site(ProjectPaths(tmp_path))
        assert report.versions == []
        assert report.index_path.exists()
