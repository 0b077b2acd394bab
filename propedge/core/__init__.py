"""Core mathematics and configuration for the prop evaluation framework.

This package contains pure, sport-agnostic building blocks:

- ``odds_math``: American odds conversion and vig removal
- ``distributions``: Poisson / Normal tail probabilities, sample statistics
- ``staking``: decision labels and stake sizing
- ``sport_config``: per-sport constants (lookbacks, stat fields, baselines)
- ``result``: ``Result`` / ``ErrorKind`` and the fallback combinator

Nothing in this package imports from ``propedge.services`` or ``propedge.models``.
All modules are side-effect-free and unit-testable in isolation.
"""
