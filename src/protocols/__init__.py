"""Protocol-specific implementations.

Currently supported:
- Aave v3 (src.protocols.aave)
"""
