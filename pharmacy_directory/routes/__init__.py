# Routes package init
"""
Pharmacy Directory Backend — API Routes Package
================================================

What:  HTTP route handlers that accept requests and return responses.

Route Inventory:
    - pharmacies.py:  POST   /api/pharmacies
                      GET    /api/pharmacies?city=&service=
                      GET    /api/pharmacies/{id}
                      PUT    /api/pharmacies/{id}
                      DELETE /api/pharmacies/{id}
    - health.py:      GET    /health

Design Principle:
    Routes stay THIN: pull data out of the request, call PharmacyService,
    return the result. Status codes for failures come from the exception
    handlers in main.py, not from the handlers themselves.
"""
