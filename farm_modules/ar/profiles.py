"""
Accounts Receivable posting profiles.

Profiles:
    InvoiceSent        -- Dr A/R, Cr each line's revenue account (+ tax)
    ReceiptPosted      -- Dr deposit account, Cr A/R per invoice payment,
                          Cr income lines, Cr default income for the rest
"""

from farm_kernel.domain.dtos import ControlAccountKind
from farm_kernel.domain.posting_profile import DocumentRole, LedgerEffect, PostingProfile

MODULE_NAME = "ar"

K = ControlAccountKind
R = DocumentRole


# --- Invoice sent -----------------------------------------------------------

INVOICE_SENT = PostingProfile(
    name="InvoiceSent",
    document_type="invoice",
    trigger="send",
    effects=(
        LedgerEffect(debit=K.AR, credit=R.LINE_ACCOUNT, amount="line_amount", per_line="lines"),
        LedgerEffect(debit=K.AR, credit=K.DEFAULT_INCOME, amount="tax_amount", memo="Sales tax"),
    ),
    description="Recognizes revenue per line against the customer's receivable",
)


# --- Receipt posted ---------------------------------------------------------

RECEIPT_POSTED = PostingProfile(
    name="ReceiptPosted",
    document_type="receipt",
    trigger="post",
    effects=(
        LedgerEffect(
            debit=R.BANK_ACCOUNT, credit=K.AR, amount="amount", per_line="invoice_payments"
        ),
        LedgerEffect(
            debit=R.BANK_ACCOUNT, credit=R.LINE_ACCOUNT, amount="amount", per_line="income_lines"
        ),
        LedgerEffect(
            debit=R.BANK_ACCOUNT,
            credit=K.DEFAULT_INCOME,
            amount="unapplied_amount",
            memo="Unapplied receipt",
        ),
    ),
    description="Records money received and settles the applied invoices",
)


AR_PROFILES = {p.name: p for p in (INVOICE_SENT, RECEIPT_POSTED)}
