"""JSON API over the ledger and valuation engine."""

import logging
from typing import Iterator

from fastapi import APIRouter, Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import Config, get_config, load_tokens
from .ledger.entries import build_exit, build_investor_flow, build_monthly_record, build_trade
from .ledger.importer import ImportFileError, import_investor_flows, import_trades
from .pricing.client import CoinMarketCapClient
from .service import FundService
from .storage.database import Database

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["fund"])


class TradeIn(BaseModel):
    token: str
    units: float
    kind: str = "Buy"
    date: str | None = None
    avg_price: float | None = None
    total: float | None = None
    notes: str | None = None


class InvestorFlowIn(BaseModel):
    month: str
    client: str
    kind: str
    amount: float


class ExitIn(BaseModel):
    token: str
    cost_basis: float
    exit_date: str | None = None


class MonthlyRecordIn(BaseModel):
    month: str
    gp_subs: float | None = None
    lp_subs: float | None = None
    initial_value: float | None = None
    ending_value: float | None = None
    fund_return: float | None = None
    btc_return: float | None = None
    eth_return: float | None = None
    cci30_return: float | None = None
    sp_ex_mega_return: float | None = None
    spx_return: float | None = None
    qqq_return: float | None = None
    fund_expenses: float | None = None
    mgmt_fees: float | None = None
    setup_costs: float | None = None


class ManualPriceIn(BaseModel):
    token: str
    price: float = Field(ge=0)


def get_db(request: Request) -> Iterator[Database]:
    """One connection per request."""
    with Database(request.app.state.config, db_path=request.app.state.db_path) as db:
        yield db


def get_service(request: Request, db: Database = Depends(get_db)) -> FundService:
    return FundService(db, request.app.state.price_client, request.app.state.config)


def _not_found(what: str, item_id) -> HTTPException:
    return HTTPException(status_code=404, detail=f"{what} {item_id} not found")


# Valuation


@router.get("/holdings")
def get_holdings(service: FundService = Depends(get_service)) -> list[dict]:
    return [h.to_dict() for h in service.holdings()]


@router.get("/cash-balance")
def get_cash_balance(service: FundService = Depends(get_service)) -> dict:
    return service.cash_balance().to_dict()


@router.get("/quotes")
def get_quotes(service: FundService = Depends(get_service)) -> dict:
    return {token: q.to_dict() for token, q in service.quotes().items()}


@router.get("/valuation")
def get_valuation(service: FundService = Depends(get_service)) -> dict:
    return service.portfolio().to_dict()


@router.get("/reconciliation")
def get_reconciliation(service: FundService = Depends(get_service)) -> dict:
    return service.reconciliation().to_dict()


@router.get("/reconciliation/token/{token}")
def get_token_detail(token: str, service: FundService = Depends(get_service)) -> dict:
    return service.token_detail(token)


@router.get("/summary")
def get_summary(service: FundService = Depends(get_service)) -> dict:
    return service.summary().to_dict()


@router.get("/sector-watch")
def get_sector_watch(request: Request, service: FundService = Depends(get_service)) -> list[dict]:
    tokens = load_tokens(request.app.state.config)
    return [w.to_dict() for w in service.sector_watch(tokens)]


# Manual prices


@router.get("/manual-prices")
def list_manual_prices(db: Database = Depends(get_db)) -> dict:
    return db.get_manual_prices()


@router.put("/manual-price")
def put_manual_price(body: ManualPriceIn, db: Database = Depends(get_db)) -> dict:
    token = body.token.strip().upper()
    if not token:
        raise ValueError("token is required")
    return db.upsert_manual_price(token, body.price).to_dict()


@router.delete("/manual-price/{token}")
def delete_manual_price(token: str, db: Database = Depends(get_db)) -> dict:
    if not db.delete_manual_price(token):
        raise _not_found("Manual price", token.upper())
    return {"success": True}


# Monthly performance


@router.get("/perf-tracker")
def get_perf_tracker(service: FundService = Depends(get_service)) -> list[dict]:
    return [row.to_dict() for row in service.performance_table()]


@router.post("/perf-tracker")
def post_perf_tracker(body: MonthlyRecordIn, db: Database = Depends(get_db)) -> dict:
    values = body.model_dump(exclude={"month"})
    record = build_monthly_record(body.month, **values)
    return db.upsert_monthly_record(record).to_dict()


@router.delete("/perf-tracker/{record_id}")
def delete_perf_tracker(record_id: int, db: Database = Depends(get_db)) -> dict:
    if not db.delete_monthly_record(record_id):
        raise _not_found("Monthly record", record_id)
    return {"success": True}


# Trades


@router.get("/trades")
def list_trades(db: Database = Depends(get_db)) -> list[dict]:
    return [t.to_dict() for t in db.get_all_trades()]


@router.post("/trades", status_code=201)
def create_trade(body: TradeIn, db: Database = Depends(get_db)) -> dict:
    trade = build_trade(**body.model_dump())
    return db.insert_trade(trade).to_dict()


@router.put("/trades/{trade_id}")
def update_trade(trade_id: int, body: TradeIn, db: Database = Depends(get_db)) -> dict:
    trade = build_trade(**body.model_dump(), trade_id=trade_id)
    updated = db.update_trade(trade_id, trade)
    if updated is None:
        raise _not_found("Trade", trade_id)
    return updated.to_dict()


@router.delete("/trades/{trade_id}")
def delete_trade(trade_id: int, db: Database = Depends(get_db)) -> dict:
    if not db.delete_trade(trade_id):
        raise _not_found("Trade", trade_id)
    return {"success": True}


@router.delete("/trades")
def clear_trades(db: Database = Depends(get_db)) -> dict:
    return {"success": True, "deleted": db.clear_trades()}


# Investor flows


@router.get("/investors")
def list_investors(db: Database = Depends(get_db)) -> list[dict]:
    return [f.to_dict() for f in db.get_all_investor_flows()]


@router.post("/investors", status_code=201)
def create_investor(body: InvestorFlowIn, db: Database = Depends(get_db)) -> dict:
    flow = build_investor_flow(body.month, body.client, body.kind, body.amount)
    return db.insert_investor_flow(flow).to_dict()


@router.put("/investors/{flow_id}")
def update_investor(flow_id: int, body: InvestorFlowIn, db: Database = Depends(get_db)) -> dict:
    flow = build_investor_flow(body.month, body.client, body.kind, body.amount, flow_id=flow_id)
    updated = db.update_investor_flow(flow_id, flow)
    if updated is None:
        raise _not_found("Investor flow", flow_id)
    return updated.to_dict()


@router.delete("/investors/{flow_id}")
def delete_investor(flow_id: int, db: Database = Depends(get_db)) -> dict:
    if not db.delete_investor_flow(flow_id):
        raise _not_found("Investor flow", flow_id)
    return {"success": True}


@router.delete("/investors")
def clear_investors(db: Database = Depends(get_db)) -> dict:
    return {"success": True, "deleted": db.clear_investor_flows()}


# Exits


@router.get("/exits")
def list_exits(db: Database = Depends(get_db)) -> list[dict]:
    return [e.to_dict() for e in db.get_all_exits()]


@router.post("/exits", status_code=201)
def create_exit(body: ExitIn, db: Database = Depends(get_db)) -> dict:
    return db.insert_exit(build_exit(body.token, body.cost_basis, body.exit_date)).to_dict()


@router.put("/exits/{exit_id}")
def update_exit(exit_id: int, body: ExitIn, db: Database = Depends(get_db)) -> dict:
    record = build_exit(body.token, body.cost_basis, body.exit_date, exit_id=exit_id)
    updated = db.update_exit(exit_id, record)
    if updated is None:
        raise _not_found("Exit", exit_id)
    return updated.to_dict()


@router.delete("/exits/{exit_id}")
def delete_exit(exit_id: int, db: Database = Depends(get_db)) -> dict:
    if not db.delete_exit(exit_id):
        raise _not_found("Exit", exit_id)
    return {"success": True}


@router.delete("/exits")
def clear_exits(db: Database = Depends(get_db)) -> dict:
    return {"success": True, "deleted": db.clear_exits()}


# Uploads


@router.post("/upload/trades")
def upload_trades(file: UploadFile = File(...), db: Database = Depends(get_db)) -> dict:
    content = file.file.read()
    logger.info("Processing trade upload %s (%d bytes)", file.filename, len(content))
    return import_trades(db, content, filename=file.filename).to_dict()


@router.post("/upload/investors")
def upload_investors(file: UploadFile = File(...), db: Database = Depends(get_db)) -> dict:
    content = file.file.read()
    logger.info("Processing investor upload %s (%d bytes)", file.filename, len(content))
    return import_investor_flows(db, content, filename=file.filename).to_dict()


@router.get("/upload/stats")
def upload_stats(db: Database = Depends(get_db)) -> dict:
    return db.ledger_stats()


def _validation_error(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=422, content={"error": str(exc)})


def create_app(
    config: Config | None = None,
    db_path=None,
    price_client: CoinMarketCapClient | None = None,
) -> FastAPI:
    """
    Build the API application.

    Args:
        config: Configuration (default: get_config())
        db_path: Database file, overriding config.db_path
        price_client: Shared quote client; one is created from config when omitted
    """
    config = config or get_config()
    if price_client is None:
        price_client = CoinMarketCapClient(config, [t.symbol for t in load_tokens(config)])

    app = FastAPI(title="Fund Valuation API")
    app.state.config = config
    app.state.db_path = db_path or config.db_path
    app.state.price_client = price_client

    app.include_router(router)
    app.add_exception_handler(ValueError, _validation_error)
    app.add_exception_handler(ImportFileError, _validation_error)
    return app
