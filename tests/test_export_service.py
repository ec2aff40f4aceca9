import asyncio
from pathlib import Path

import pytest

from doc_gateway.conversion import ExportService, LocalArtifactStore, Reaper
from doc_gateway.errors import ConfigurationError, UpstreamError, ValidationError


def test_export_stores_bytes_and_builds_link(converter, store):
    service = ExportService(converter, store, public_base_url="https://gw.test/")

    result = asyncio.run(service.export("markdown", "pdf", "# Hi"))

    assert result.link == f"https://gw.test/download/{result.artifact.id}"
    assert Path(result.artifact.path).read_bytes() == b"%PD"
    assert converter.calls == [("markdown", "pdf", "# Hi")]


def test_export_without_public_url_fails_before_backend(converter, store):
    service = ExportService(converter, store, public_base_url="")

    with pytest.raises(ConfigurationError):
        asyncio.run(service.export("markdown", "pdf", "# Hi"))
    assert converter.calls == []
    assert len(store) == 0


def test_export_validation_failure_skips_backend(converter, store):
    service = ExportService(converter, store, public_base_url="https://gw.test")

    with pytest.raises(ValidationError):
        asyncio.run(service.export("latex", "pdf", "x"))
    assert converter.calls == []


def test_upstream_failure_creates_no_artifact(converter, store):
    converter.fail_with = UpstreamError("pandoc convert failed: HTTP 500", status=500)
    service = ExportService(converter, store, public_base_url="https://gw.test")

    with pytest.raises(UpstreamError):
        asyncio.run(service.export("markdown", "docx", "# Hi"))
    assert len(store) == 0


def test_sweep_evicts_only_expired(store: LocalArtifactStore, clock):
    reaper = Reaper(store, ttl=900, interval=300)
    old = store.put(b"old", "application/pdf")
    clock.advance(800)
    fresh = store.put(b"new", "application/pdf")

    assert reaper.sweep() == 0
    clock.advance(101)
    assert reaper.sweep() == 1

    assert old.id not in store
    assert not Path(old.path).exists()
    assert store.get(fresh.id) == fresh


def test_artifact_retrievable_until_window_elapses(store: LocalArtifactStore, clock):
    reaper = Reaper(store, ttl=900, interval=300)
    artifact = store.put(b"x", "application/pdf")

    clock.advance(900)
    reaper.sweep()
    assert store.get(artifact.id) == artifact

    clock.advance(1)
    reaper.sweep()
    assert artifact.id not in store


def test_background_loop_sweeps_and_stops(tmp_path: Path):
    store = LocalArtifactStore(tmp_path)

    async def scenario() -> tuple[bool, bool]:
        reaper = Reaper(store, ttl=0, interval=0.01)
        artifact = store.put(b"x", "application/pdf")
        await asyncio.sleep(0.001)
        reaper.start()
        assert reaper.running
        for _ in range(200):
            if artifact.id not in store:
                break
            await asyncio.sleep(0.01)
        await reaper.stop()
        return artifact.id in store, reaper.running

    still_there, running = asyncio.run(scenario())
    assert still_there is False
    assert running is False


def test_loop_survives_failing_sweep(tmp_path: Path, caplog):
    class BrokenStore(LocalArtifactStore):
        def expired(self, max_age, now=None):
            raise RuntimeError("disk on fire")

    async def scenario() -> bool:
        reaper = Reaper(BrokenStore(tmp_path), ttl=0, interval=0.01)
        reaper.start()
        await asyncio.sleep(0.1)
        alive = reaper.running
        await reaper.stop()
        return alive

    with caplog.at_level("ERROR"):
        assert asyncio.run(scenario()) is True
    assert "artifact sweep failed" in caplog.text
