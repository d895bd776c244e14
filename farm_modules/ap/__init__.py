"""
Accounts Payable Module (``farm_modules.ap``).

Responsibility
--------------
Vendor bills and the checks that pay them, with their posting profiles.
"""

from farm_modules.ap.orm import (
    Bill,
    BillLine,
    BillStatus,
    Check,
    CheckBillPayment,
    CheckExpenseLine,
    CheckStatus,
)
from farm_modules.ap.profiles import AP_PROFILES, BILL_POSTED, CHECK_POSTED

__all__ = [
    "AP_PROFILES",
    "BILL_POSTED",
    "Bill",
    "BillLine",
    "BillStatus",
    "CHECK_POSTED",
    "Check",
    "CheckBillPayment",
    "CheckExpenseLine",
    "CheckStatus",
]
