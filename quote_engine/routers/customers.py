from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
from .. import models, schemas
from ..auth import get_current_operator
from ..database import get_db
from ..exceptions import ConfigurationError
from ..pricing_engine import PricingEngine
from .settings import load_pricing_config

router = APIRouter(prefix="/customers", tags=["customers"])

@router.post("/", response_model=schemas.Customer)
def create_customer(
    customer: schemas.CustomerCreate,
    db: Session = Depends(get_db),
    current_operator: models.Operator = Depends(get_current_operator),
):
    db_customer = models.Customer(**customer.model_dump())
    db.add(db_customer)
    db.commit()
    db.refresh(db_customer)
    return db_customer

@router.get("/", response_model=List[schemas.Customer])
def list_customers(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_operator: models.Operator = Depends(get_current_operator),
):
    return db.query(models.Customer).order_by(models.Customer.name).offset(skip).limit(limit).all()

@router.get("/{customer_id}", response_model=schemas.Customer)
def get_customer(
    customer_id: int,
    db: Session = Depends(get_db),
    current_operator: models.Operator = Depends(get_current_operator),
):
    customer = db.query(models.Customer).filter(models.Customer.id == customer_id).first()
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")
    return customer


partners_router = APIRouter(prefix="/partners", tags=["partners"])

@partners_router.post("/", response_model=schemas.Partner)
def create_partner(
    partner: schemas.PartnerCreate,
    db: Session = Depends(get_db),
    current_operator: models.Operator = Depends(get_current_operator),
):
    # Same ceiling the proposal applies when the commission is used as referral percent
    try:
        PricingEngine(load_pricing_config(db)).validate_referral(partner.default_commission_pct)
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    db_partner = models.Partner(**partner.model_dump())
    db.add(db_partner)
    db.commit()
    db.refresh(db_partner)
    return db_partner

@partners_router.get("/", response_model=List[schemas.Partner])
def list_partners(
    db: Session = Depends(get_db),
    current_operator: models.Operator = Depends(get_current_operator),
):
    return db.query(models.Partner).order_by(models.Partner.name).all()
