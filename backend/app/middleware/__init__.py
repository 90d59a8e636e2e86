# Middleware package init
"""
Invoicerr Backend — Middleware Package
========================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (order matters!):
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route

    1. Rate Limit FIRST: reject abusive callers before any processing
    2. Request ID: correlation ID for logs, error bodies and webhook deliveries
    3. Logging: one access line with status, duration, user and company
    4. GZip / CORS: FastAPI's stock middleware

Authentication and tenant resolution are NOT middleware: they are FastAPI
dependencies in app.guards, so each route declares what it needs.
"""
