"""
Gate Pass Backend - REST API for gate pass records and their PDFs

This package provides a FastAPI-based web service for gate pass documents
(itemized goods leaving or entering a facility). It enables:

- Creating, updating, listing and deleting gate pass records
- Downloading a PDF rendition of each gate pass
- ETag-based caching so unchanged gate passes are never re-rendered
- Conditional downloads (If-None-Match / 304 Not Modified)

Key Components:
    - main: FastAPI application and HTTP endpoint definitions
    - pdf_service: Cache orchestration (fingerprint, lookup, render, store)
    - normalizer / fingerprint: Canonical record form and its ETag
    - logo / renderer: Logo resolution and HTML templating
    - pdf_engine: Shared headless Chromium that prints HTML to PDF
    - cache_store / s3_cache_store: SQLite and S3 PDF cache backends
    - database: Gate pass record persistence
    - configuration: Config loading and overrides

Usage:
    Run the API server with:
        uvicorn gatepass_backend.main:app --reload --host 0.0.0.0 --port 8000

    Chromium must be installed once for PDF rendering:
        python -m playwright install chromium
"""
