"""Storefront — mutation core of the shop backend (accounts, cart, checkout).

Invariants:
    - Package root contains no executable code (import side-effects prohibited)
"""
