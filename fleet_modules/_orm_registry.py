"""
Module ORM Registry (``fleet_modules._orm_registry``).

Ensures every module-level SQLAlchemy model is imported so that
``Base.metadata`` holds its table before ``create_all()`` runs.
``fleet_kernel.db.engine.create_tables`` and ``tests/conftest.py`` both
go through ``import_all_orm_models()``.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``fleet_modules.*.orm`` module.

    Idempotent; repeated calls are harmless.
    """
    # fmt: off
    import fleet_kernel.services.sequence_service  # noqa: F401  # sequence_counters
    import fleet_modules.inventory.orm  # noqa: F401
    import fleet_modules.procurement.orm  # noqa: F401
    import fleet_modules.used_parts.orm  # noqa: F401
    # fmt: on
