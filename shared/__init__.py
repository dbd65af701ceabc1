"""
Shared utilities for the song listing access service.

This package aggregates common building blocks consumed by the service:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Transient failure classification and retry wrappers
- base_service: FastAPI service shell

Service logic should not be imported into shared/ to avoid import cycles.
"""
