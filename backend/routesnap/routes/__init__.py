# Routes package init
"""
RouteSnap Backend — API Routes Package
========================================

What:  HTTP route handlers that accept requests and return responses.

Route Inventory:
    - stops.py:   POST /api/stops/parse    (route-sheet text → stops)
                  POST /api/stops/scan     (route-sheet photo → stops + pins)
    - health.py:  GET  /health             (service health check)

Design Principle:
    Routes are THIN: extract request data, call RouteService, return the
    response model. Business logic belongs in services.
"""
