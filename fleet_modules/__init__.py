"""
Fleet Modules.

Orchestration over the kernel and engines.  Each module contains:
- Domain models (frozen DTOs, the nouns)
- ORM models (persistence)
- A service that owns the unit of work
- Configuration where the module has policy

Modules:
- Inventory: stock catalog and the append-only stock ledger
- Procurement: requisitions, purchase orders, goods receipt
- Used parts: removed-part batches and their dispositions
"""
