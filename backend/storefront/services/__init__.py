"""Services Layer — account flows, cart ledger, item mutations, checkout.

Invariants:
    - Every public operation returns an Outcome; nothing here raises StorefrontError
    - Services receive their collaborators explicitly (no module-level singletons)
"""
