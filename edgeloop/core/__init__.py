"""Core mathematics for the EdgeLoop decision core.

This package contains pure, storage-agnostic building blocks:

- ``odds_math`` — American/decimal/probability conversion, vig removal
- ``kelly``     — fractional Kelly stake sizing
- ``edge``      — edge, expected value and stake for one priced side
- ``drift``     — PSI estimation and the drift verdict reduction

Nothing in this package imports from ``edgeloop.services`` or ``edgeloop.models``.
All modules are side-effect-free and unit-testable in isolation.
"""
