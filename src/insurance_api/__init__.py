"""
Insurance Services API package.

Modules:
- config: environment-driven settings (pydantic-settings)
- db: PostgreSQL connection pool, query helpers and typed storage errors
- errors: application exceptions and their JSON error handlers
- auth_utils: pluggable admin-role gate
- schemas: Pydantic models for the REST API
- main: FastAPI application factory and routes
"""
