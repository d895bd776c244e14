"""
Accounts Receivable Module (``farm_modules.ar``).

Responsibility
--------------
Customer invoices and the receipts that settle them.  Posting logic lives
in ``farm_services``; this module owns the documents and their posting
profiles.
"""

from farm_modules.ar.orm import (
    Invoice,
    InvoiceLine,
    InvoiceStatus,
    Receipt,
    ReceiptIncomeLine,
    ReceiptInvoicePayment,
    ReceiptStatus,
)
from farm_modules.ar.profiles import AR_PROFILES, INVOICE_SENT, RECEIPT_POSTED

__all__ = [
    "AR_PROFILES",
    "INVOICE_SENT",
    "Invoice",
    "InvoiceLine",
    "InvoiceStatus",
    "RECEIPT_POSTED",
    "Receipt",
    "ReceiptIncomeLine",
    "ReceiptInvoicePayment",
    "ReceiptStatus",
]
