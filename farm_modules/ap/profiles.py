"""
Accounts Payable posting profiles.

Profiles:
    BillPosted         -- Dr each line's expense/COGS account (+ tax), Cr A/P
    CheckPosted        -- Dr A/P per bill payment, Dr expense lines,
                          Cr the check's bank account
"""

from farm_kernel.domain.dtos import ControlAccountKind
from farm_kernel.domain.posting_profile import DocumentRole, LedgerEffect, PostingProfile

MODULE_NAME = "ap"

K = ControlAccountKind
R = DocumentRole


# --- Bill posted ------------------------------------------------------------

BILL_POSTED = PostingProfile(
    name="BillPosted",
    document_type="bill",
    trigger="post",
    effects=(
        LedgerEffect(debit=R.LINE_ACCOUNT, credit=K.AP, amount="line_amount", per_line="lines"),
        LedgerEffect(debit=K.DEFAULT_EXPENSE, credit=K.AP, amount="tax_amount", memo="Sales tax"),
    ),
    description="Books the vendor liability against each line's expense account",
)


# --- Check posted -----------------------------------------------------------

CHECK_POSTED = PostingProfile(
    name="CheckPosted",
    document_type="check",
    trigger="post",
    effects=(
        LedgerEffect(
            debit=K.AP, credit=R.BANK_ACCOUNT, amount="amount", per_line="bill_payments"
        ),
        LedgerEffect(
            debit=R.LINE_ACCOUNT, credit=R.BANK_ACCOUNT, amount="amount", per_line="expense_lines"
        ),
    ),
    description="Pays bills and direct expenses out of a bank account",
)


AP_PROFILES = {p.name: p for p in (BILL_POSTED, CHECK_POSTED)}
