"""
Shared utilities for the cloud sample API.

This package aggregates common building blocks consumed by the service:

- config: Service configuration via pydantic-settings
- logging: Structured logging with trace and request correlation
- metrics: Prometheus metrics helpers
- tracing: OpenTelemetry tracing config
- errors: Error types, error responses and best-effort outcomes
- secrets_manager: Database credential resolution
- base_service: FastAPI application scaffold

Do not import from service_* packages into shared/.
"""
