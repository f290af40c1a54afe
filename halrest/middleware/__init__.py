# Middleware package init
"""
HalRest — Middleware Package
==============================

Middleware chain:
    Request → [Request ID] → [Logging] → [CORS] → Resource endpoint

    The request ID is set first so every log line of the request, including
    the access log written on the way out, carries it.
"""
