from sqlalchemy import Column, Integer, String, Float, DateTime, Date, Text, ForeignKey, Enum, Boolean, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from .database import Base
from .schemas import DraftStatus, PaymentMethod


class Operator(Base):
    """Sales operator. Identity comes from the external provider; we keep the FK target."""
    __tablename__ = "operators"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    drafts = relationship("ProposalDraftRecord", back_populates="operator")


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    phone = Column(String)
    email = Column(String)
    created_at = Column(DateTime, default=datetime.utcnow)

    contracts = relationship("Contract", back_populates="customer")


class Partner(Base):
    """Referral partner (architect, designer) paid out of the sale price."""
    __tablename__ = "partners"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    default_commission_pct = Column(Float, default=0.0)
    pix_key = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class StoreSettings(Base):
    """Single-row store configuration. NULL columns fall back to env settings."""
    __tablename__ = "store_settings"

    id = Column(Integer, primary_key=True, index=True)
    markup_percent = Column(Float, nullable=True)
    interest_rate_monthly = Column(Float, nullable=True)
    max_discount_percent = Column(Float, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ProposalDraftRecord(Base):
    """Working quote state between operator edits (ProposalDraft as JSON)."""
    __tablename__ = "proposal_drafts"

    id = Column(String, primary_key=True)  # UUID
    operator_id = Column(Integer, ForeignKey("operators.id"), nullable=True)
    status = Column(Enum(DraftStatus), default=DraftStatus.DRAFT)
    draft_json = Column(JSON, default=dict)
    contract_id = Column(Integer, ForeignKey("contracts.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    operator = relationship("Operator", back_populates="drafts")


class Contract(Base):
    __tablename__ = "contracts"

    id = Column(Integer, primary_key=True, index=True)
    contract_number = Column(String, unique=True, nullable=False)
    client_id = Column(Integer, ForeignKey("customers.id"), nullable=False)
    operator_id = Column(Integer, ForeignKey("operators.id"), nullable=True)
    status = Column(String, default="sale")  # 'sale' | 'cancelled'
    environments_json = Column(JSON, nullable=False)  # selected EnvironmentQuoteLines with detail
    proposal_total = Column(Float, default=0.0)
    discount_value = Column(Float, default=0.0)
    final_value = Column(Float, default=0.0)
    referral_party_id = Column(Integer, ForeignKey("partners.id"), nullable=True)
    referral_percent = Column(Float, default=0.0)
    referral_payout = Column(Float, default=0.0)
    financing_cost = Column(Float, default=0.0)
    net_commission_base = Column(Float, default=0.0)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    customer = relationship("Customer", back_populates="contracts")
    installments = relationship("ContractInstallment", back_populates="contract",
                                cascade="all, delete-orphan", order_by="ContractInstallment.due_date")


class ContractInstallment(Base):
    __tablename__ = "contract_installments"

    id = Column(Integer, primary_key=True, index=True)
    contract_id = Column(Integer, ForeignKey("contracts.id"), nullable=False)
    sequence = Column(Integer, default=0)  # 0 = down payment
    label = Column(String, nullable=True)
    method = Column(Enum(PaymentMethod), nullable=False)
    due_date = Column(Date, nullable=False)
    amount = Column(Float, nullable=False)
    status = Column(String, default="pending")

    contract = relationship("Contract", back_populates="installments")
