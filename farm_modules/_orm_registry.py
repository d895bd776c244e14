"""
Module ORM Registry (``farm_modules._orm_registry``).

Responsibility
--------------
Ensure the kernel and every module ORM model is imported so that
``Base.metadata`` holds all table definitions before tables are created.

Architecture position
---------------------
**Modules layer** -- utility.  Called by ``farm_kernel.db.engine.create_tables``
and by ``tests/conftest.py``.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``farm_modules.*.orm`` module.

    Kernel tables come first: module documents reference ``accounts.id`` and
    ``ledger_transactions.id``.  Idempotent.
    """
    import farm_kernel.models  # noqa: F401
    import farm_kernel.services.sequence_service  # noqa: F401
    # fmt: off
    import farm_modules.inventory.orm  # noqa: F401
    import farm_modules.ar.orm  # noqa: F401
    import farm_modules.ap.orm  # noqa: F401
    import farm_modules.gl.orm  # noqa: F401
    import farm_modules.events.orm  # noqa: F401
    # fmt: on
