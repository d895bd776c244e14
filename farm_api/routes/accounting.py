"""Posting and void routes for the accounting documents."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from farm_api.deps import get_actor_id, get_db, get_poster, get_tenant_id
from farm_api.schemas import ApiResponse, ReasonIn, document_data
from farm_kernel.exceptions import UnknownDocumentTypeError
from farm_services import DocumentPoster, DocumentType, PostingResult

router = APIRouter(prefix="/accounting", tags=["accounting"])

_VOIDABLE = {
    "invoices": DocumentType.INVOICE,
    "bills": DocumentType.BILL,
    "checks": DocumentType.CHECK,
    "receipts": DocumentType.RECEIPT,
}


def _respond(db: Session, result: PostingResult) -> ApiResponse:
    data = document_data(result.document)
    db.commit()
    return ApiResponse(
        data=data,
        ledger_transaction_id=result.ledger_transaction_id,
        already_posted=result.already_posted,
    )


def _post(
    document_type: DocumentType,
    document_id: UUID,
    db: Session,
    poster: DocumentPoster,
    tenant_id: str,
    actor_id: str | None,
) -> ApiResponse:
    return _respond(db, poster.post(document_type, tenant_id, document_id, actor_id))


@router.post("/invoices/{invoice_id}/send", response_model=ApiResponse)
def send_invoice(
    invoice_id: UUID,
    db: Session = Depends(get_db),
    poster: DocumentPoster = Depends(get_poster),
    tenant_id: str = Depends(get_tenant_id),
    actor_id: str | None = Depends(get_actor_id),
) -> ApiResponse:
    return _post(DocumentType.INVOICE, invoice_id, db, poster, tenant_id, actor_id)


@router.post("/bills/{bill_id}/post", response_model=ApiResponse)
def post_bill(
    bill_id: UUID,
    db: Session = Depends(get_db),
    poster: DocumentPoster = Depends(get_poster),
    tenant_id: str = Depends(get_tenant_id),
    actor_id: str | None = Depends(get_actor_id),
) -> ApiResponse:
    return _post(DocumentType.BILL, bill_id, db, poster, tenant_id, actor_id)


@router.post("/checks/{check_id}/post", response_model=ApiResponse)
def post_check(
    check_id: UUID,
    db: Session = Depends(get_db),
    poster: DocumentPoster = Depends(get_poster),
    tenant_id: str = Depends(get_tenant_id),
    actor_id: str | None = Depends(get_actor_id),
) -> ApiResponse:
    return _post(DocumentType.CHECK, check_id, db, poster, tenant_id, actor_id)


@router.post("/receipts/{receipt_id}/post", response_model=ApiResponse)
def post_receipt(
    receipt_id: UUID,
    db: Session = Depends(get_db),
    poster: DocumentPoster = Depends(get_poster),
    tenant_id: str = Depends(get_tenant_id),
    actor_id: str | None = Depends(get_actor_id),
) -> ApiResponse:
    return _post(DocumentType.RECEIPT, receipt_id, db, poster, tenant_id, actor_id)


@router.post("/journal-entries/{entry_id}/post", response_model=ApiResponse)
def post_journal_entry(
    entry_id: UUID,
    db: Session = Depends(get_db),
    poster: DocumentPoster = Depends(get_poster),
    tenant_id: str = Depends(get_tenant_id),
    actor_id: str | None = Depends(get_actor_id),
) -> ApiResponse:
    return _post(DocumentType.JOURNAL_ENTRY, entry_id, db, poster, tenant_id, actor_id)


@router.post("/journal-entries/{entry_id}/reverse", response_model=ApiResponse)
def reverse_journal_entry(
    entry_id: UUID,
    data: ReasonIn,
    db: Session = Depends(get_db),
    poster: DocumentPoster = Depends(get_poster),
    tenant_id: str = Depends(get_tenant_id),
    actor_id: str | None = Depends(get_actor_id),
) -> ApiResponse:
    result = poster.reverse(
        DocumentType.JOURNAL_ENTRY, tenant_id, entry_id, data.reason, actor_id
    )
    return _respond(db, result)


@router.post("/{kind}/{document_id}/void", response_model=ApiResponse)
def void_document(
    kind: str,
    document_id: UUID,
    data: ReasonIn,
    db: Session = Depends(get_db),
    poster: DocumentPoster = Depends(get_poster),
    tenant_id: str = Depends(get_tenant_id),
    actor_id: str | None = Depends(get_actor_id),
) -> ApiResponse:
    document_type = _VOIDABLE.get(kind)
    if document_type is None:
        raise UnknownDocumentTypeError(kind)
    result = poster.reverse(document_type, tenant_id, document_id, data.reason, actor_id)
    return _respond(db, result)
