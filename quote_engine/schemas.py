from pydantic import BaseModel, Field
from typing import Dict, Optional, List
from datetime import date, datetime
import enum


class PaymentMethod(str, enum.Enum):
    CREDIT_CARD = "credit_card"
    BANK_SLIP = "bank_slip"
    PIX = "pix"
    CASH = "cash"
    CHEQUE = "cheque"
    FINANCING = "financing"


class DraftStatus(str, enum.Enum):
    DRAFT = "draft"
    FINALIZED = "finalized"


# --- Pipeline types ---

class RawLineItem(BaseModel):
    """One priced ITEM as read from the CAD export, before grouping."""
    description: str
    category: str = ""
    quantity: float = Field(gt=0)
    unit_price: float
    total_price: float
    environment_name: str

    model_config = {"frozen": True}


class AggregatedItem(BaseModel):
    description: str
    category: str = ""
    quantity: float
    unit_price: float
    total_price: float


class EnvironmentQuoteLine(BaseModel):
    id: int
    environment_name: str
    description: str = ""
    cost_total: float = 0.0
    sale_value: float = 0.0
    detail: List[AggregatedItem] = []
    selected: bool = True


class Installment(BaseModel):
    method: PaymentMethod
    due_date: date
    amount: float = Field(gt=0)
    label: Optional[str] = None


class ProposalDraft(BaseModel):
    """Working state of one quote negotiation, owned by a single operator session."""
    client_id: Optional[int] = None
    referral_party_id: Optional[int] = None
    referral_percent: float = 0.0
    lines: List[EnvironmentQuoteLine] = []
    discount_percent: float = 0.0
    discount_value: float = 0.0
    schedule: List[Installment] = []
    installment_preview: int = 1  # quick-quote financing estimate before a schedule exists


class ProposalTotals(BaseModel):
    base: float
    proposal_total: float
    referral_payout: float
    discount_percent: float
    discount_value: float
    final_value: float
    scheduled_total: float
    remainder: float
    is_balanced: bool
    can_apply_remainder_as_discount: bool
    present_value: float
    financing_cost: float
    net_commission_base: float
    markup_scores: Dict[int, float] = {}  # line id -> (sale - cost) / cost


class ContractRecord(BaseModel):
    """Structured record handed to the persistence sink on finalization."""
    client_id: int
    operator_id: Optional[int] = None
    lines: List[EnvironmentQuoteLine]
    proposal_total: float
    discount_value: float
    final_value: float
    schedule: List[Installment]
    referral_party_id: Optional[int] = None
    referral_percent: float = 0.0
    referral_payout: float = 0.0
    financing_cost: float = 0.0
    net_commission_base: float = 0.0
    finalized_at: datetime


# --- API request/response schemas ---

class CustomerBase(BaseModel):
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None

class CustomerCreate(CustomerBase):
    pass

class Customer(CustomerBase):
    id: int
    created_at: datetime
    class Config:
        from_attributes = True

class PartnerBase(BaseModel):
    name: str
    default_commission_pct: float = 0.0
    pix_key: Optional[str] = None

class PartnerCreate(PartnerBase):
    pass

class Partner(PartnerBase):
    id: int
    created_at: datetime
    class Config:
        from_attributes = True

class StoreSettingsUpdate(BaseModel):
    markup_percent: Optional[float] = Field(default=None, ge=0)
    interest_rate_monthly: Optional[float] = Field(default=None, ge=0)
    max_discount_percent: Optional[float] = Field(default=None, ge=0, le=100)

class DraftCreate(BaseModel):
    client_id: Optional[int] = None

class DraftResponse(BaseModel):
    id: str
    status: DraftStatus
    draft: ProposalDraft
    totals: ProposalTotals

class ManualEnvironmentRequest(BaseModel):
    environment_name: str
    value: float = Field(gt=0)

class DetailItemRequest(BaseModel):
    description: str
    quantity: float = Field(default=1.0, gt=0)
    total_price: float = Field(gt=0)

class EnvironmentUpdate(BaseModel):
    environment_name: Optional[str] = None
    sale_value: Optional[float] = Field(default=None, ge=0)
    selected: Optional[bool] = None

class ReferralRequest(BaseModel):
    referral_party_id: Optional[int] = None
    referral_percent: Optional[float] = None  # falls back to the partner's default

class DiscountRequest(BaseModel):
    discount_percent: Optional[float] = None
    discount_value: Optional[float] = None

class InstallmentsRequest(BaseModel):
    method: PaymentMethod
    amount: float
    count: int = 1
    first_due_date: Optional[date] = None
    down_payment: bool = False

class Contract(BaseModel):
    id: int
    contract_number: str
    client_id: int
    final_value: float
    referral_payout: float
    financing_cost: float
    net_commission_base: float
    created_at: datetime
    class Config:
        from_attributes = True
