# Services package init
"""
Pharmacy Directory Backend — Services Layer
============================================

What:  Business logic between routes (HTTP) and the database (persistence).

Service Inventory:
    - PharmacyService: create / list / get / merge-update / soft-delete
    - identifiers:     parse_pharmacy_id() → ValidPharmacyId | InvalidPharmacyId

Why services are separate from routes:
    1. Testability: Services can be unit-tested with a mocked session
    2. Single responsibility: Routes handle HTTP; services handle store access
       and error translation
"""
