import logging
from contextlib import contextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from agrotrade import schemas
from agrotrade.config import get_settings
from agrotrade.deps import build_ledger, get_ledger
from agrotrade.errors import InternalError, LedgerError, NotFound, ValidationError
from agrotrade.ledger import AuctionLedger
from agrotrade.logging_config import setup_logging

logger = logging.getLogger(__name__)

settings = get_settings()

app = FastAPI(title=settings.app_name)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


@app.on_event("startup")
def _init_ledger():
    setup_logging(settings.log_level)
    app.state.ledger = build_ledger(settings)
    logger.info("Crop ledger ready (%s storage)", settings.storage_backend)


@app.exception_handler(LedgerError)
async def _ledger_error(_: Request, exc: LedgerError):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": exc.message})


@app.exception_handler(RequestValidationError)
async def _invalid_body(_: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"success": False, "message": f"Invalid request body: {exc.errors()[0]['msg']}"})


@contextmanager
def _boundary(action: str):
    """Domain errors pass through; anything else becomes a 500 with its message."""
    try:
        yield
    except LedgerError:
        raise
    except Exception as e:
        logger.exception("Unexpected error while %s", action)
        raise InternalError(str(e)) from e


@app.get("/api/crops", response_model=schemas.CropListOut, response_model_exclude_none=True)
def list_crops(action: Optional[str] = None, ledger: AuctionLedger = Depends(get_ledger)):
    # the serverless form only lists on a bare GET
    if action:
        raise NotFound("Route not found")
    with _boundary("listing crops"):
        return schemas.CropListOut(crops=ledger.list_crops())


@app.post("/api/crops/add", response_model=schemas.CropOut, response_model_exclude_none=True)
def add_crop(body: Optional[schemas.AddCropIn] = None, ledger: AuctionLedger = Depends(get_ledger)):
    body = body or schemas.AddCropIn()
    with _boundary("adding a crop"):
        crop = ledger.create_crop(
            body.crop_name,
            body.quantity,
            body.min_price,
            body.location,
            body.farmer_id,
            body.farmer_name,
        )
    return schemas.CropOut(crop=crop)


@app.post("/api/crops/bid", response_model=schemas.BidOut, response_model_exclude_none=True)
def place_bid(body: Optional[schemas.BidIn] = None, ledger: AuctionLedger = Depends(get_ledger)):
    body = body or schemas.BidIn()
    with _boundary("placing a bid"):
        bid, crop = ledger.place_bid(body.crop_id, body.bid_amount, body.trader_id, body.trader_name)
    return schemas.BidOut(bid=bid, crop=crop)


@app.post("/api/crops/end", response_model=schemas.MessageOut)
def end_auction(body: Optional[schemas.EndAuctionIn] = None, ledger: AuctionLedger = Depends(get_ledger)):
    body = body or schemas.EndAuctionIn()
    with _boundary("ending an auction"):
        ledger.close_auction(body.crop_id, body.farmer_id)
    return schemas.MessageOut(message="Auction ended successfully")


@app.post("/api/crops/payment", response_model=schemas.MessageOut)
def record_payment(body: Optional[schemas.PaymentIn] = None, ledger: AuctionLedger = Depends(get_ledger)):
    body = body or schemas.PaymentIn()
    with _boundary("recording a payment"):
        ledger.record_payment(body.crop_id, body.trader_id, body.payment_id)
    return schemas.MessageOut(message="Payment recorded successfully")


# Single-endpoint form used by the serverless deployment: POST /api/crops?action=bid
_ACTIONS = {
    "add": (schemas.AddCropIn, add_crop),
    "bid": (schemas.BidIn, place_bid),
    "end": (schemas.EndAuctionIn, end_auction),
    "payment": (schemas.PaymentIn, record_payment),
}


@app.post("/api/crops")
def dispatch_action(
    action: Optional[str] = None,
    body: Optional[dict] = None,
    ledger: AuctionLedger = Depends(get_ledger),
):
    if action not in _ACTIONS:
        raise NotFound("Route not found")
    model, handler = _ACTIONS[action]
    try:
        payload = model.model_validate(body or {})
    except SchemaError as e:
        raise ValidationError(f"Invalid request body: {e.errors()[0]['msg']}") from e

    result: BaseModel = handler(payload, ledger)
    return JSONResponse(content=result.model_dump(mode="json", by_alias=True, exclude_none=True))
