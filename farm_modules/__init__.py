"""
Farm Modules.

Per-domain persistence and posting profiles over the farm kernel.
Each module contains:
- ORM models for its source documents (the nouns)
- Posting profiles (document -> debit/credit mapping, held as data)

Modules:
- AR: Customer invoices and receipts
- AP: Vendor bills and checks
- GL: User-authored journal entries
- Events: Farm events (feeding, treatment, purchase, sale, labor, ...)
- Inventory: Catalog items, per-site balances, movements and the mover

Posting itself is orchestrated by ``farm_services.document_poster``.
"""
