"""BiblioTech - Services Package

This package contains the client side of the record store contract:
- HTTP client construction (connection limits, timeouts)
- Record store client (health, auth, book CRUD)
"""
