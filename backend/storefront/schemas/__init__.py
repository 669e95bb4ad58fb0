"""Pydantic Schemas — request/response validation for API endpoints.

Invariants:
    - Schemas validate at the system boundary only
    - Update schemas list mutable fields explicitly; identity fields are absent
"""
