"""
HTTP surface for the price resolution engine.

Used by the admin pricing simulation screen and by checkout callers. Holds
no pricing logic of its own.
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from ..engine.models import PriceCalculationResult
from .state import engine

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Parts Pricing API",
    description="Multi-level price resolution for the auto-parts marketplace",
    version="1.0.0"
)

# Enable CORS for the admin frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


class ResolveRequest(BaseModel):
    product_id: str
    customer_id: Optional[str] = None
    quantity: int = Field(default=1, ge=1)
    # Evaluate promotions and rule windows at this instant (admin simulation)
    at: Optional[datetime] = None


class BatchRequest(BaseModel):
    product_ids: list[str]
    customer_id: Optional[str] = None
    quantity: int = Field(default=1, ge=1)


def serialize_result(result: PriceCalculationResult) -> dict:
    """Encode a result with its rendered calculation steps."""
    data = jsonable_encoder(result)
    data["calculation_steps"] = result.calculation_steps
    return data


@app.get("/")
async def root():
    return {"status": "online", "message": "Parts Pricing API Active"}


@app.post("/prices/resolve")
async def resolve_price(req: ResolveRequest):
    try:
        if req.at is not None:
            result = engine.simulate_price_calculation(req.product_id, req.customer_id, req.quantity, at=req.at)
        else:
            result = engine.get_effective_price_for_customer(req.product_id, req.customer_id, req.quantity)
        return serialize_result(result)
    except Exception as e:
        logger.exception("Price resolution endpoint failed")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/prices/batch")
async def resolve_batch(req: BatchRequest):
    if not req.product_ids:
        raise HTTPException(status_code=400, detail="product_ids must not be empty")
    try:
        results = engine.get_batch_prices_for_customer(req.product_ids, req.customer_id, req.quantity)
        return {product_id: serialize_result(r) for product_id, r in results.items()}
    except Exception as e:
        logger.exception("Batch pricing endpoint failed")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/products/{product_id}/levels")
async def get_product_levels(product_id: str):
    try:
        return {
            "product_id": product_id,
            "levels": jsonable_encoder(engine.get_all_prices_for_product(product_id)),
        }
    except Exception as e:
        logger.exception("Level listing failed for product %s", product_id)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/pricing/cache/invalidate")
async def invalidate_cache():
    engine.invalidate_pricing_cache()
    return {"success": True, "message": "Pricing cache invalidated"}


@app.get("/pricing/validate")
async def validate_pricing():
    try:
        return jsonable_encoder(engine.validate_configuration())
    except Exception as e:
        logger.exception("Configuration validation failed")
        raise HTTPException(status_code=500, detail=str(e))
