"""
Store settings API.

GET /api/settings  - effective pricing configuration
PUT /api/settings  - update markup / interest rate / max discount for the store
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_operator
from ..config import PricingConfig
from ..database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["settings"])

_OVERRIDE_FIELDS = ("markup_percent", "interest_rate_monthly", "max_discount_percent")


def load_pricing_config(db: Session) -> PricingConfig:
    """Env settings overridden by the store_settings row. Snapshot per request."""
    row = db.query(models.StoreSettings).first()
    overrides = {}
    if row:
        overrides = {field: getattr(row, field) for field in _OVERRIDE_FIELDS}
    return PricingConfig.from_settings(overrides=overrides)


@router.get("/", response_model=PricingConfig)
def get_settings(
    db: Session = Depends(get_db),
    current_operator: models.Operator = Depends(get_current_operator),
):
    return load_pricing_config(db)


@router.put("/", response_model=PricingConfig)
def update_settings(
    update: schemas.StoreSettingsUpdate,
    db: Session = Depends(get_db),
    current_operator: models.Operator = Depends(get_current_operator),
):
    row = db.query(models.StoreSettings).first()
    if not row:
        row = models.StoreSettings()
        db.add(row)
    for field, value in update.model_dump(exclude_unset=True).items():
        setattr(row, field, value)
    db.commit()
    logger.info("Store settings updated by operator %s: %s", current_operator.id,
                update.model_dump(exclude_unset=True))
    return load_pricing_config(db)
