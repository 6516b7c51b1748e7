"""
Goodflag Signing Proxy - REST API for browser-driven PDF signing

This package provides a FastAPI-based web service that sits between a
browser upload form and the Goodflag e-signature API. It enables:

- PDF document uploads and validation
- Creation and start of a remote signing workflow per upload
- Job status tracking, reconciled against the remote workflow on each poll
- Download of the signed document once the workflow has finished
- Time-based expiry of old jobs

The service keeps all job state in memory and is meant to run as a single
process. Nothing survives a restart.

Key Components:
    - main: FastAPI application and HTTP endpoint definitions
    - signing_service: Upload sequence and status reconciliation
    - job_store: In-memory job registry with background expiry
    - provider: Goodflag HTTP API client
    - models: Pydantic models for settings, provider payloads and responses
    - configuration: Settings loading from defaults, YAML and environment
    - errors: Error types mapped to HTTP responses
    - utils: Form value and filename helpers

Usage:
    Run the API server with:
        uvicorn goodflag_proxy.main:app --reload --host 0.0.0.0 --port 8000

    Or use the console script, which honours PORT and LOG_LEVEL:
        goodflag-proxy
"""
