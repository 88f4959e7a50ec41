"""
fleet_config -- YAML configuration for the fleet modules.

``load_config(path)`` is the single entry point; it returns a frozen
``FleetConfig`` holding one typed config per module.  The database URL is
not part of it; ``fleet_kernel.db.engine`` reads ``DATABASE_URL``.
"""

from fleet_config.loader import FleetConfig, load_config

__all__ = ["FleetConfig", "load_config"]
