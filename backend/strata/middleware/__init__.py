# Middleware package init
"""
Strata Backend: Middleware Package
==================================

What:  Cross-cutting HTTP concerns applied around the dispatcher.

Middleware Chain (order matters):
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → HTTP bridge → Dispatcher

    Responses pass back through the same chain in reverse, so the request id
    header and the access log line both see the final status code.
"""
