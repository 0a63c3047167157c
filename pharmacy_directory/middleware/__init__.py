# Middleware package init
"""
Pharmacy Directory Backend — Middleware Package
================================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (order matters!):
    Request → [Request ID] → [Logging] → [Rate Limit] → [GZip] → [CORS] → Route Handler

    1. Request ID first: every response, including 429s and unhandled
       errors, gets an ID in its body and X-Request-ID header
    2. Logging: one access line per request, tagged with the ID
    3. Rate Limit: reject floods before any route work
"""
