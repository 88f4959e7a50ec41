"""
Fleet Kernel

Infrastructure for the procurement-to-inventory reconciliation core:
- Declarative ORM base and transactional session scope
- Append-only stock transaction enforcement
- Typed exceptions and structured logging
- Locked-counter document numbering
"""

__version__ = "0.1.0"
