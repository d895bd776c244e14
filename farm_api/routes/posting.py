"""Event processing, direct ledger reversal, ledger reads and the chart of accounts."""

from __future__ import annotations

from datetime import date
from uuid import UUID, uuid4

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from farm_api.deps import (
    get_actor_id,
    get_clock,
    get_db,
    get_policy,
    get_poster,
    get_tenant_id,
)
from farm_api.schemas import (
    ApiResponse,
    ProcessEventIn,
    ReasonIn,
    account_data,
    balance_data,
    document_data,
    page_data,
    transaction_data,
)
from farm_kernel.domain.clock import Clock
from farm_kernel.domain.policy import PostingPolicy
from farm_kernel.models.ledger import LedgerTransactionStatus
from farm_kernel.selectors.ledger_selector import LedgerSelector, LedgerTransactionView
from farm_kernel.services.account_directory import AccountDirectory
from farm_kernel.services.ledger_writer import LedgerWriter
from farm_services import DocumentPoster, DocumentType

router = APIRouter(prefix="/posting", tags=["posting"])


@router.post("/process-event", response_model=ApiResponse)
def process_event(
    data: ProcessEventIn,
    db: Session = Depends(get_db),
    poster: DocumentPoster = Depends(get_poster),
    tenant_id: str = Depends(get_tenant_id),
    actor_id: str | None = Depends(get_actor_id),
) -> ApiResponse:
    locker_id = f"api-{uuid4()}"
    result = poster.post(DocumentType.EVENT, tenant_id, data.event_id, actor_id, locker_id)
    payload = document_data(result.document)
    payload["movementCount"] = len(result.movements)
    db.commit()
    return ApiResponse(
        data=payload,
        ledger_transaction_id=result.ledger_transaction_id,
        already_posted=result.already_posted,
    )


@router.post("/transactions/{transaction_id}/reverse", response_model=ApiResponse)
def reverse_transaction(
    transaction_id: UUID,
    data: ReasonIn,
    db: Session = Depends(get_db),
    policy: PostingPolicy = Depends(get_policy),
    clock: Clock = Depends(get_clock),
    tenant_id: str = Depends(get_tenant_id),
    actor_id: str | None = Depends(get_actor_id),
) -> ApiResponse:
    writer = LedgerWriter(db, policy, clock)
    result = writer.reverse_transaction(
        tenant_id=tenant_id,
        transaction_id=transaction_id,
        reason=data.reason,
        actor_id=actor_id,
        locker_id=f"api-{uuid4()}",
    )
    payload = transaction_data(LedgerTransactionView.from_model(result.transaction))
    db.commit()
    return ApiResponse(data=payload, ledger_transaction_id=result.transaction_id)


@router.get("/account-balances", response_model=ApiResponse)
def account_balances(
    as_of_date: date | None = Query(default=None, alias="asOfDate"),
    db: Session = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
) -> ApiResponse:
    rows = LedgerSelector(db).account_balances(tenant_id, as_of_date)
    return ApiResponse(data=[balance_data(row) for row in rows])


@router.get("/transactions/{transaction_id}", response_model=ApiResponse)
def get_transaction(
    transaction_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
) -> ApiResponse:
    view = LedgerSelector(db).get_transaction(tenant_id, transaction_id)
    return ApiResponse(data=transaction_data(view), ledger_transaction_id=view.id)


@router.get("/transactions", response_model=ApiResponse)
def list_transactions(
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    status: LedgerTransactionStatus | None = Query(default=None),
    db: Session = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
) -> ApiResponse:
    page = LedgerSelector(db).list_transactions(tenant_id, limit, offset, status)
    return ApiResponse(data=page_data(page))


@router.get("/accounts", response_model=ApiResponse)
def list_accounts(
    active_only: bool = Query(default=True, alias="activeOnly"),
    db: Session = Depends(get_db),
    policy: PostingPolicy = Depends(get_policy),
    tenant_id: str = Depends(get_tenant_id),
) -> ApiResponse:
    accounts = AccountDirectory(db, policy).list_accounts(tenant_id, active_only)
    return ApiResponse(data={"accounts": [account_data(a) for a in accounts]})
