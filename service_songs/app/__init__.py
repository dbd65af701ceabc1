"""
Song listing access service package.

The service serves a paginated, filtered, sorted song listing to an
internal and a public read surface that share one cache:
- Caller identity: populated upstream, checked before any work
- Caching: one Redis namespace shared by both surfaces
- Resilience: transient store failures retried once, process faults logged

Structure:
- app.main: FastAPI app, routes, and lifecycle wiring.
- app.catalog: Catalog store client and row models.
- app.caching: Cache key derivation and the namespaced cache.
- app.aggregation: Join/aggregation pipeline and requester name display.
- app.domain: Query parameters, caller identity, and the two façades.
- app.health: Process fault supervisor and periodic liveness probe.
"""
