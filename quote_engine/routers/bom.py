"""
CAD import preview API.

POST /api/bom/import - Parse a CAD XML export and return the priced
                       environments without touching any draft
"""

import logging

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from .. import models
from ..auth import get_current_operator
from ..bom_parser import import_bom
from ..database import get_db
from ..exceptions import BomImportError
from .proposals import http_error, read_upload
from .settings import load_pricing_config

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bom", tags=["bom-import"])


@router.post("/import")
def preview_import(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_operator: models.Operator = Depends(get_current_operator),
):
    content = read_upload(file)
    config = load_pricing_config(db)
    try:
        lines = import_bom(content, config)
    except BomImportError as e:
        logger.warning("CAD import preview failed for %s: %s", file.filename, e)
        raise http_error(e)

    return {
        "filename": file.filename,
        "markup_percent": config.markup_percent,
        "environments": [line.model_dump() for line in lines],
        "cost_total": sum(line.cost_total for line in lines),
        "sale_total": sum(line.sale_value for line in lines),
    }
