"""
Pricing endpoints — preset materials and single-job calculation.
"""

import json
import logging

from fastapi import APIRouter

from ..config import settings
from ..materials import list_materials
from ..pricing_engine import calculate_job
from ..schemas import CalculateRequest, GlobalSettings
from ..storage import shared_data_file

logger = logging.getLogger(__name__)

router = APIRouter(tags=["pricing"])


@router.get("/materials")
def materials():
    return list_materials()


@router.post("/calculate")
def calculate(request: CalculateRequest):
    """Price one job. Without globalSettings in the body, the stored settings are used."""
    global_settings = request.global_settings
    if global_settings is None:
        try:
            global_settings = shared_data_file(settings.DATA_FILE).read().global_settings
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Stored settings unreadable, pricing with defaults: %s", e)
            global_settings = GlobalSettings()
    return calculate_job(request.job, global_settings).model_dump(by_alias=True)
