"""
Song listing access service.
"""

from typing import Any, Dict, Optional

from fastapi import Request

from shared.base_service import BaseService
from shared.config import ServiceConfig
from service_songs.app.aggregation.engine import AggregationEngine
from service_songs.app.caching.cache_manager import NamespacedCache, SongListCache
from service_songs.app.catalog.store import CatalogStore
from service_songs.app.domain.facades import (
    INTERNAL_PROFILE,
    PUBLIC_PROFILE,
    SongListFacade,
    SongListingService,
)
from service_songs.app.domain.params import ListingDefaults
from service_songs.app.health.monitor import HealthMonitor
from service_songs.app.health.supervisor import ProcessFaultSupervisor, get_process_supervisor


class SongsService(BaseService):
    """Serves the song listing to the internal and public surfaces."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        store: Optional[CatalogStore] = None,
        cache: Optional[NamespacedCache] = None,
        supervisor: Optional[ProcessFaultSupervisor] = None,
    ):
        super().__init__("songs", 8000, config)

        self.supervisor = supervisor or get_process_supervisor(metrics=self.metrics)
        self.supervisor.install()

        self.store = store or CatalogStore(
            self.config.postgres_dsn,
            min_size=self.config.postgres_min_pool_size,
            max_size=self.config.postgres_max_pool_size,
            command_timeout=self.config.postgres_command_timeout,
            retry_delay=self.config.store_retry_delay_seconds,
            is_transient=self.supervisor.is_transient,
            on_retry=self.metrics.record_store_retry,
        )
        self.cache = cache or NamespacedCache(self.config.redis_url)
        self.song_list_cache = SongListCache(self.cache, metrics=self.metrics)

        self.engine = AggregationEngine(self.store, metrics=self.metrics)
        self.listing = SongListingService(self.engine, self.song_list_cache)

        defaults = ListingDefaults(
            limit=self.config.default_page_limit,
            max_limit=self.config.max_page_limit,
        )
        self.internal_facade = SongListFacade(self.listing, INTERNAL_PROFILE.with_defaults(defaults))
        self.public_facade = SongListFacade(self.listing, PUBLIC_PROFILE.with_defaults(defaults))

        self.health_monitor = HealthMonitor(
            self.store,
            interval=self.config.health_check_interval_seconds,
            metrics=self.metrics,
        )

        self._setup_song_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.songs_service = self

    def _setup_song_routes(self):
        """Set up the listing routes for both surfaces."""

        @self.app.get("/api/songs")
        async def list_songs(request: Request):
            """Internal song listing; needs the caller identity set upstream."""
            return await self._serve(self.internal_facade, request)

        @self.app.get("/api/open/songs")
        async def list_open_songs(request: Request):
            """Public song listing; needs the API key identity set upstream."""
            return await self._serve(self.public_facade, request)

        @self.app.get("/")
        async def root():
            return {
                "service": "songs",
                "message": "Song listing access layer",
                "version": "1.0.0"
            }

    async def _serve(self, facade: SongListFacade, request: Request) -> Dict[str, Any]:
        identity = getattr(request.state, facade.profile.identity_attribute, None)
        return await facade.list_songs(identity, request.query_params)

    async def on_startup(self) -> None:
        self.supervisor.attach_loop()
        try:
            await self.store.start()
        except Exception as e:
            # Pool is opened lazily on the next store call.
            self.logger.error("Catalog store unavailable at startup", error=str(e))
        self.health_monitor.start()

    async def on_shutdown(self) -> None:
        await self.health_monitor.stop()
        await self.store.stop()
        await self.cache.close()
        self.supervisor.detach_loop()

    async def _check_dependencies(self) -> Dict[str, Any]:
        return {
            "postgres": "ok" if await self.store.health_check() else "error",
            "redis": "ok" if await self.cache.ping() else "error",
            "health_monitor": self.health_monitor.status(),
        }


def create_app():
    """Create the FastAPI application."""
    service = SongsService()
    return service.app


if __name__ == "__main__":
    SongsService().run()
