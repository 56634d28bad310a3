"""
CSP Strategy Analytics Backend Package.

FastAPI service layer that turns a CSP bid event's shipment exports into a
carrier strategy summary.

Subpackages:
    - api: FastAPI route handlers
    - core: Configuration, database, exceptions, and dependencies
    - models: Pydantic schemas and enums
    - services: CSV parsing, aggregation, narrative, and persistence services
"""

__version__ = "1.0.0"
