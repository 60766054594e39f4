"""
Proposal API: quote engineering from CAD import to contract.

POST   /api/proposals                                  - Start a draft
GET    /api/proposals/{id}                             - Draft + live totals
PUT    /api/proposals/{id}/client                      - Attach the client
POST   /api/proposals/{id}/import                      - Import a CAD XML export into the draft
POST   /api/proposals/{id}/environments                - Add a manual environment
PATCH  /api/proposals/{id}/environments/{line_id}      - Rename / override value / (de)select
DELETE /api/proposals/{id}/environments/{line_id}      - Remove an environment
GET    /api/proposals/{id}/environments/{line_id}/items - Sorted detail
POST   /api/proposals/{id}/environments/{line_id}/items - Add a manual detail item
DELETE /api/proposals/{id}/environments/{line_id}/items/{index}
PUT    /api/proposals/{id}/referral                    - Referral partner and percent
PUT    /api/proposals/{id}/discount                    - Discount by percent or value
PUT    /api/proposals/{id}/installment-preview         - Quick financing preview (N monthly)
POST   /api/proposals/{id}/installments                - Add installments to the schedule
DELETE /api/proposals/{id}/installments/{index}        - Remove one installment
POST   /api/proposals/{id}/apply-remainder             - Turn the unallocated remainder into discount
POST   /api/proposals/{id}/finalize                    - Write the contract (balanced schedules only)
"""

import logging
import uuid
from datetime import date, datetime, timedelta

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .. import models, proposal, schemas
from ..aggregator import SORT_KEYS, next_sort, sort_detail
from ..auth import get_current_operator
from ..bom_parser import import_bom
from ..config import PricingConfig
from ..database import get_db
from ..exceptions import QuoteEngineError, ReconciliationBlocked
from ..reconciler import DOWN_PAYMENT_LABEL, build_installments, down_payment
from .settings import load_pricing_config

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/proposals", tags=["proposals"])

MAX_UPLOAD_MB = 20


class ClientRequest(BaseModel):
    client_id: int


class InstallmentPreviewRequest(BaseModel):
    installments: int


# --- Helpers ---

def http_error(exc: QuoteEngineError) -> HTTPException:
    """Map pipeline errors to HTTP. Blocked reconciliation is a conflict, the rest are bad input."""
    if isinstance(exc, ReconciliationBlocked):
        return HTTPException(status_code=409, detail={
            "code": exc.code,
            "message": str(exc),
            "remainder": round(exc.remainder, 2),
        })
    return HTTPException(status_code=422, detail={"code": exc.code, "message": str(exc)})


def read_upload(file: UploadFile) -> bytes:
    if not file.filename or not file.filename.lower().endswith(".xml"):
        raise HTTPException(status_code=400, detail="File must be an XML export")
    file_bytes = file.file.read()
    file_size_mb = len(file_bytes) / (1024 * 1024)
    if file_size_mb > MAX_UPLOAD_MB:
        raise HTTPException(
            status_code=413,
            detail=f"File too large: {file_size_mb:.1f} MB (max {MAX_UPLOAD_MB} MB)",
        )
    return file_bytes


def generate_contract_number(db: Session) -> str:
    count = db.query(models.Contract).count()
    year = datetime.utcnow().year
    return f"PRJ-{year}-{str(count + 1).zfill(4)}"


def _get_record(db: Session, draft_id: str, editable: bool = True) -> models.ProposalDraftRecord:
    record = db.query(models.ProposalDraftRecord).filter(
        models.ProposalDraftRecord.id == draft_id
    ).first()
    if not record:
        raise HTTPException(status_code=404, detail="Proposal not found")
    if editable and record.status == schemas.DraftStatus.FINALIZED:
        raise HTTPException(status_code=409, detail="Proposal already finalized")
    return record


def _load(record: models.ProposalDraftRecord) -> schemas.ProposalDraft:
    return schemas.ProposalDraft.model_validate(record.draft_json or {})


def _response(record: models.ProposalDraftRecord, draft: schemas.ProposalDraft,
              config: PricingConfig) -> schemas.DraftResponse:
    return schemas.DraftResponse(
        id=record.id,
        status=record.status,
        draft=draft,
        totals=proposal.totals(draft, config),
    )


def _apply(db: Session, draft_id: str, command) -> schemas.DraftResponse:
    """Load -> command(draft, config) -> save. Errors leave the stored draft untouched."""
    record = _get_record(db, draft_id)
    config = load_pricing_config(db)
    try:
        draft = command(_load(record), config)
    except QuoteEngineError as e:
        logger.info("Proposal %s edit rejected: %s", draft_id, e)
        raise http_error(e)
    record.draft_json = draft.model_dump(mode="json")
    db.commit()
    return _response(record, draft, config)


# --- Endpoints ---

@router.post("/", response_model=schemas.DraftResponse)
def create_proposal(
    request: schemas.DraftCreate,
    db: Session = Depends(get_db),
    current_operator: models.Operator = Depends(get_current_operator),
):
    draft = schemas.ProposalDraft(client_id=request.client_id)
    record = models.ProposalDraftRecord(
        id=str(uuid.uuid4()),
        operator_id=current_operator.id,
        status=schemas.DraftStatus.DRAFT,
        draft_json=draft.model_dump(mode="json"),
    )
    db.add(record)
    db.commit()
    return _response(record, draft, load_pricing_config(db))


@router.get("/{draft_id}", response_model=schemas.DraftResponse)
def get_proposal(
    draft_id: str,
    db: Session = Depends(get_db),
    current_operator: models.Operator = Depends(get_current_operator),
):
    record = _get_record(db, draft_id, editable=False)
    return _response(record, _load(record), load_pricing_config(db))


@router.put("/{draft_id}/client", response_model=schemas.DraftResponse)
def set_client(
    draft_id: str,
    request: ClientRequest,
    db: Session = Depends(get_db),
    current_operator: models.Operator = Depends(get_current_operator),
):
    if not db.query(models.Customer).filter(models.Customer.id == request.client_id).first():
        raise HTTPException(status_code=404, detail="Customer not found")
    return _apply(db, draft_id, lambda draft, config: draft.model_copy(update={"client_id": request.client_id}))


@router.post("/{draft_id}/import", response_model=schemas.DraftResponse)
def import_cad_export(
    draft_id: str,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_operator: models.Operator = Depends(get_current_operator),
):
    """Parse the XML, group items per environment, apply markup, append to the draft."""
    content = read_upload(file)

    def command(draft, config):
        lines = import_bom(content, config)
        return proposal.import_environments(draft, lines, config)

    logger.info("Importing %s into proposal %s", file.filename, draft_id)
    return _apply(db, draft_id, command)


@router.post("/{draft_id}/environments", response_model=schemas.DraftResponse)
def add_environment(
    draft_id: str,
    request: schemas.ManualEnvironmentRequest,
    db: Session = Depends(get_db),
    current_operator: models.Operator = Depends(get_current_operator),
):
    return _apply(db, draft_id, lambda draft, config: proposal.add_manual_environment(
        draft, request.environment_name, request.value, config,
    ))


@router.patch("/{draft_id}/environments/{line_id}", response_model=schemas.DraftResponse)
def update_environment(
    draft_id: str,
    line_id: int,
    request: schemas.EnvironmentUpdate,
    db: Session = Depends(get_db),
    current_operator: models.Operator = Depends(get_current_operator),
):
    return _apply(db, draft_id, lambda draft, config: proposal.update_environment(
        draft, line_id, config,
        environment_name=request.environment_name,
        sale_value=request.sale_value,
        selected=request.selected,
    ))


@router.delete("/{draft_id}/environments/{line_id}", response_model=schemas.DraftResponse)
def remove_environment(
    draft_id: str,
    line_id: int,
    db: Session = Depends(get_db),
    current_operator: models.Operator = Depends(get_current_operator),
):
    return _apply(db, draft_id, lambda draft, config: proposal.remove_environment(draft, line_id, config))


@router.get("/{draft_id}/environments/{line_id}/items")
def list_environment_items(
    draft_id: str,
    line_id: int,
    sort: str = "description",
    direction: str = "asc",
    db: Session = Depends(get_db),
    current_operator: models.Operator = Depends(get_current_operator),
):
    if sort not in SORT_KEYS or direction not in ("asc", "desc"):
        raise HTTPException(status_code=400, detail=f"Sort by one of {', '.join(SORT_KEYS)}, asc or desc")
    draft = _load(_get_record(db, draft_id, editable=False))
    line = next((line for line in draft.lines if line.id == line_id), None)
    if line is None:
        raise HTTPException(status_code=404, detail="Environment not found")
    return {
        "environment_name": line.environment_name,
        "sort": sort,
        "direction": direction,
        # Direction to request when the operator clicks each column header next
        "next_direction": {key: next_sort((sort, direction), key)[1] for key in SORT_KEYS},
        "items": [item.model_dump() for item in sort_detail(line.detail, sort, direction)],
    }


@router.post("/{draft_id}/environments/{line_id}/items", response_model=schemas.DraftResponse)
def add_environment_item(
    draft_id: str,
    line_id: int,
    request: schemas.DetailItemRequest,
    db: Session = Depends(get_db),
    current_operator: models.Operator = Depends(get_current_operator),
):
    return _apply(db, draft_id, lambda draft, config: proposal.add_detail_item(
        draft, line_id, request.description, request.total_price, request.quantity, config,
    ))


@router.delete("/{draft_id}/environments/{line_id}/items/{index}", response_model=schemas.DraftResponse)
def remove_environment_item(
    draft_id: str,
    line_id: int,
    index: int,
    db: Session = Depends(get_db),
    current_operator: models.Operator = Depends(get_current_operator),
):
    return _apply(db, draft_id, lambda draft, config: proposal.remove_detail_item(draft, line_id, index, config))


@router.put("/{draft_id}/referral", response_model=schemas.DraftResponse)
def set_referral(
    draft_id: str,
    request: schemas.ReferralRequest,
    db: Session = Depends(get_db),
    current_operator: models.Operator = Depends(get_current_operator),
):
    percent = request.referral_percent
    if request.referral_party_id is not None:
        partner = db.query(models.Partner).filter(models.Partner.id == request.referral_party_id).first()
        if not partner:
            raise HTTPException(status_code=404, detail="Partner not found")
        if percent is None:
            percent = partner.default_commission_pct
    return _apply(db, draft_id, lambda draft, config: proposal.set_referral(
        draft, request.referral_party_id, percent or 0.0, config,
    ))


@router.put("/{draft_id}/discount", response_model=schemas.DraftResponse)
def set_discount(
    draft_id: str,
    request: schemas.DiscountRequest,
    db: Session = Depends(get_db),
    current_operator: models.Operator = Depends(get_current_operator),
):
    if (request.discount_percent is None) == (request.discount_value is None):
        raise HTTPException(status_code=400, detail="Send either discount_percent or discount_value")
    if request.discount_percent is not None:
        return _apply(db, draft_id, lambda draft, config: proposal.set_discount_percent(
            draft, request.discount_percent, config,
        ))
    return _apply(db, draft_id, lambda draft, config: proposal.set_discount_value(
        draft, request.discount_value, config,
    ))


@router.put("/{draft_id}/installment-preview", response_model=schemas.DraftResponse)
def set_installment_preview(
    draft_id: str,
    request: InstallmentPreviewRequest,
    db: Session = Depends(get_db),
    current_operator: models.Operator = Depends(get_current_operator),
):
    return _apply(db, draft_id, lambda draft, config: proposal.set_installment_preview(
        draft, request.installments, config,
    ))


@router.post("/{draft_id}/installments", response_model=schemas.DraftResponse)
def add_installments(
    draft_id: str,
    request: schemas.InstallmentsRequest,
    db: Session = Depends(get_db),
    current_operator: models.Operator = Depends(get_current_operator),
):
    def command(draft, config):
        if request.down_payment:
            new = [down_payment(request.method, request.amount, request.first_due_date or date.today())]
        else:
            first_due = request.first_due_date or date.today() + timedelta(days=config.schedule_interval_days)
            new = build_installments(
                request.method, request.amount, request.count, first_due,
                interval_days=config.schedule_interval_days,
            )
        return proposal.add_installments(draft, new, config)

    return _apply(db, draft_id, command)


@router.delete("/{draft_id}/installments/{index}", response_model=schemas.DraftResponse)
def remove_installment(
    draft_id: str,
    index: int,
    db: Session = Depends(get_db),
    current_operator: models.Operator = Depends(get_current_operator),
):
    return _apply(db, draft_id, lambda draft, config: proposal.remove_installment(draft, index, config))


@router.post("/{draft_id}/apply-remainder", response_model=schemas.DraftResponse)
def apply_remainder(
    draft_id: str,
    db: Session = Depends(get_db),
    current_operator: models.Operator = Depends(get_current_operator),
):
    return _apply(db, draft_id, proposal.apply_remainder_as_discount)


@router.post("/{draft_id}/finalize", response_model=schemas.Contract)
def finalize_proposal(
    draft_id: str,
    db: Session = Depends(get_db),
    current_operator: models.Operator = Depends(get_current_operator),
):
    """
    Close the sale: write the contract and its installments, retire the draft.
    """
    record = _get_record(db, draft_id)
    config = load_pricing_config(db)
    draft = _load(record)
    try:
        contract_record = proposal.finalize(draft, config, operator_id=current_operator.id)
    except QuoteEngineError as e:
        raise http_error(e)

    if not db.query(models.Customer).filter(models.Customer.id == contract_record.client_id).first():
        raise HTTPException(status_code=404, detail="Customer not found")

    contract = models.Contract(
        contract_number=generate_contract_number(db),
        client_id=contract_record.client_id,
        operator_id=contract_record.operator_id,
        environments_json=[line.model_dump(mode="json") for line in contract_record.lines],
        proposal_total=contract_record.proposal_total,
        discount_value=contract_record.discount_value,
        final_value=contract_record.final_value,
        referral_party_id=contract_record.referral_party_id,
        referral_percent=contract_record.referral_percent,
        referral_payout=contract_record.referral_payout,
        financing_cost=contract_record.financing_cost,
        net_commission_base=contract_record.net_commission_base,
    )
    sequence = 0
    for installment in contract_record.schedule:
        is_down_payment = installment.label == DOWN_PAYMENT_LABEL
        if not is_down_payment:
            sequence += 1
        contract.installments.append(models.ContractInstallment(
            sequence=0 if is_down_payment else sequence,
            label=installment.label,
            method=installment.method,
            due_date=installment.due_date,
            amount=installment.amount,
        ))
    db.add(contract)
    db.flush()

    # The working schedule lives on in the contract only
    record.status = schemas.DraftStatus.FINALIZED
    record.contract_id = contract.id
    record.draft_json = draft.model_copy(update={"schedule": []}).model_dump(mode="json")
    db.commit()
    db.refresh(contract)

    logger.info("Contract %s created from proposal %s", contract.contract_number, draft_id)
    return contract
