"""Request bodies, the response envelope and the serializers behind it."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy import inspect as sa_inspect

from farm_kernel.models.account import Account
from farm_kernel.selectors.ledger_selector import (
    AccountBalance,
    LedgerTransactionView,
    TransactionPage,
)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReasonIn(_CamelModel):
    reason: str | None = None


class ProcessEventIn(_CamelModel):
    event_id: UUID


class ApiResponse(_CamelModel):
    success: bool = True
    data: Any = None
    ledger_transaction_id: UUID | None = None
    already_posted: bool = False


class ErrorResponse(_CamelModel):
    success: bool = False
    message: str
    code: str
    details: list[dict[str, Any]] = Field(default_factory=list)


def camelize(value: Any) -> Any:
    """Rename dict keys to camelCase, recursively."""
    if isinstance(value, dict):
        return {to_camel(str(k)): camelize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [camelize(v) for v in value]
    return value


def document_data(document: Any) -> dict[str, Any]:
    """
    Column values of a posted document plus its child collections
    (lines, items, payments), keyed in camelCase.
    """
    mapper = sa_inspect(document).mapper
    data = {attr.key: getattr(document, attr.key) for attr in mapper.column_attrs}
    for relationship in mapper.relationships:
        if relationship.uselist:
            data[relationship.key] = [
                {
                    attr.key: getattr(child, attr.key)
                    for attr in sa_inspect(child).mapper.column_attrs
                }
                for child in getattr(document, relationship.key)
            ]
    return camelize(data)


def transaction_data(view: LedgerTransactionView) -> dict[str, Any]:
    data = asdict(view)
    data["total_debits"] = view.total_debits
    data["total_credits"] = view.total_credits
    return camelize(data)


def balance_data(row: AccountBalance) -> dict[str, Any]:
    data = asdict(row)
    data["balance"] = row.balance
    return camelize(data)


def account_data(account: Account) -> dict[str, Any]:
    mapper = sa_inspect(account).mapper
    return camelize({attr.key: getattr(account, attr.key) for attr in mapper.column_attrs})


def page_data(page: TransactionPage) -> dict[str, Any]:
    """Transactions of one page with their pagination block."""
    return {
        "transactions": [transaction_data(view) for view in page.transactions],
        "pagination": {"total": page.total, "limit": page.limit, "offset": page.offset},
    }
