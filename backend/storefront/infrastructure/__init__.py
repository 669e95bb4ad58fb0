"""Infrastructure Layer — external collaborators and cross-cutting concerns.

Invariants:
    - Payment, mail and credential adapters satisfy core/boundary_protocols.py
    - External failures are mapped onto core/errors.py before leaving this layer
"""
