"""Integration tests for cache generations across install, activate and offline use."""

import sys
from pathlib import Path

import httpx
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from aangan.errors import CacheInstallError, OfflineError
from aangan.offline import CacheManifest, GenerationStorage, OfflineCacheCoordinator
from aangan.offline.network import HttpFetcher

SITE = {
    "/": b"<html>feed v1</html>",
    "/index.html": b"<html>feed v1</html>",
    "/offline.html": b"<html>you are offline</html>",
    "/manifest.json": b'{"name": "WhisperVerse"}',
    "/app.js": b"console.log('v2')",
}


class Origin:
    """httpx MockTransport handler standing in for the application origin."""

    def __init__(self) -> None:
        self.online = True

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if not self.online:
            raise httpx.ConnectError("offline", request=request)
        body = SITE.get(request.url.path)
        if body is None:
            return httpx.Response(404)
        return httpx.Response(200, content=body)


@pytest.fixture
def origin() -> Origin:
    return Origin()


@pytest.fixture
def fetcher(origin: Origin) -> HttpFetcher:
    return HttpFetcher("http://aangan.test", transport=httpx.MockTransport(origin))


class TestOfflineIntegration:
    """Test generation replacement end to end over an httpx fetcher."""

    @pytest.mark.asyncio
    async def test_new_generation_replaces_old_and_serves_offline(
        self, temp_dir, origin, fetcher
    ) -> None:
        """
        INVARIANT: After G2 activates nothing from G1 is retrievable
        BREAKS: Clients keep serving stale assets after a release
        """
        storage = GenerationStorage(temp_dir / "offline.db")
        coordinator = OfflineCacheCoordinator(storage, fetcher)
        g1_manifest = CacheManifest("whisperverse", "1", ("/", "/offline.html"))
        g2_manifest = CacheManifest(
            "whisperverse", "2", ("/", "/index.html", "/manifest.json", "/app.js")
        )

        try:
            g1 = await coordinator.install(g1_manifest)
            await coordinator.activate()
            g2 = await coordinator.install(g2_manifest)
            await coordinator.activate()

            assert storage.list_generations() == [g2]
            assert storage.keys(g1) == []

            origin.online = False
            for key in g2_manifest.resources:
                assert await coordinator.fetch(key) == SITE[key]

            # Only G1 had the offline page; it went with G1
            with pytest.raises(OfflineError):
                await coordinator.fetch("/offline.html")
        finally:
            await fetcher.aclose()

    @pytest.mark.asyncio
    async def test_http_error_aborts_install(self, temp_dir, fetcher) -> None:
        storage = GenerationStorage(temp_dir / "offline.db")
        coordinator = OfflineCacheCoordinator(storage, fetcher)

        try:
            with pytest.raises(CacheInstallError) as exc_info:
                await coordinator.install(
                    CacheManifest("whisperverse", "3", ("/", "/missing.png"))
                )
        finally:
            await fetcher.aclose()

        assert isinstance(exc_info.value.original_error, httpx.HTTPStatusError)
        assert storage.list_generations() == []
