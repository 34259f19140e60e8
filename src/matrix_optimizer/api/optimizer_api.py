"""
Optimizer API - FastAPI router for analysis, recommendations and pins.

Stateless: the client sends the CSV text, matrix and ledger with every
request and keeps the ledger it gets back.
"""
from fastapi import APIRouter, HTTPException
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field
from typing import Literal, Optional

from ..engine import (
    OverrideLedger,
    PricingTier,
    TargetSpec,
    IngestError,
    InvalidPinError,
    MatrixError,
)
from ..engine.models import UNBOUNDED_COST
from ..services.matrix_service import default_matrix, find_range_issues
from ..config.settings import get_settings
from .state import optimizer

router = APIRouter(prefix="/api/optimizer", tags=["optimizer"])


# Pydantic models for API
class TierModel(BaseModel):
    """A matrix tier. Give either multiplier or gross_profit_pct."""
    id: int
    min_cost: float
    max_cost: Optional[float] = None  # None = no upper bound
    multiplier: Optional[float] = None
    gross_profit_pct: Optional[float] = None


class TargetModel(BaseModel):
    kind: Literal['percent', 'margin', 'dollar'] = 'percent'
    value: float = 5.0


class LedgerModel(BaseModel):
    locks: dict[int, float] = Field(default_factory=dict)
    stored_target_profit: Optional[float] = None


class MatrixRequest(BaseModel):
    matrix: list[TierModel]


class AnalyzeRequest(BaseModel):
    """Request model for analysis."""
    csv_text: str
    matrix: Optional[list[TierModel]] = None


class RecommendRequest(AnalyzeRequest):
    """Request model for a solve."""
    target: TargetModel = Field(default_factory=TargetModel)
    ledger: Optional[LedgerModel] = None


class PinRequest(RecommendRequest):
    """Request model for pinning a tier."""
    tier_id: int
    multiplier: float


def _build_matrix(tiers: Optional[list[TierModel]]) -> list[PricingTier]:
    """Convert request tiers into PricingTiers, falling back to the engine's matrix."""
    if not tiers:
        return optimizer.matrix

    settings = get_settings()
    if not settings.min_tiers <= len(tiers) <= settings.max_tiers:
        raise MatrixError(f"A matrix needs {settings.min_tiers}-{settings.max_tiers} tiers, got {len(tiers)}")

    matrix = []
    for t in sorted(tiers, key=lambda t: t.min_cost):
        max_cost = t.max_cost if t.max_cost is not None else UNBOUNDED_COST
        if t.multiplier is not None and t.multiplier > 1:
            matrix.append(PricingTier.from_multiplier(t.id, t.min_cost, max_cost, t.multiplier))
        elif t.gross_profit_pct is not None and 0 <= t.gross_profit_pct < 100:
            matrix.append(PricingTier.from_gross_profit(t.id, t.min_cost, max_cost, t.gross_profit_pct))
        else:
            raise MatrixError(f"Tier {t.id} needs a multiplier above 1 or a gross profit below 100%")
    return matrix


def _ledger(model: Optional[LedgerModel]) -> OverrideLedger:
    if model is None:
        return OverrideLedger()
    return OverrideLedger(locks=dict(model.locks), stored_target_profit=model.stored_target_profit)


def _prepare(request: AnalyzeRequest):
    """Shared ingest + aggregate step. Raises HTTPException on bad input."""
    try:
        matrix = _build_matrix(request.matrix)
        ingest = optimizer.ingest(request.csv_text)
    except (IngestError, MatrixError) as e:
        raise HTTPException(status_code=400, detail=e.to_dict())
    return ingest, optimizer.analyze(ingest, matrix)


def _solution(result, ledger: OverrideLedger) -> dict:
    return {
        "recommendations": jsonable_encoder(result),
        "ledger": ledger.to_dict(),
    }


# Endpoints

@router.get("/matrix/default")
async def get_default_matrix():
    """The seed matrix."""
    return jsonable_encoder(default_matrix())


@router.post("/matrix/issues")
async def get_matrix_issues(request: MatrixRequest):
    """Gaps and overlaps between tier ranges."""
    try:
        matrix = _build_matrix(request.matrix)
    except MatrixError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())
    return jsonable_encoder(find_range_issues(matrix))


@router.post("/analyze")
async def analyze(request: AnalyzeRequest):
    """Ingest a CSV export and aggregate it into tiers."""
    ingest, analysis = _prepare(request)
    return {
        "record_count": ingest.record_count,
        "skipped_count": ingest.skipped_count,
        "part_count": analysis.part_count,
        "unclassified_count": analysis.unclassified_count,
        "total_cost": analysis.total_cost,
        "total_revenue": analysis.total_revenue,
        "total_profit": analysis.total_profit,
        "current_margin": analysis.current_margin,
        "tiers": jsonable_encoder(analysis.tiers),
    }


@router.post("/recommend")
async def recommend(request: RecommendRequest):
    """Solve for a recommended matrix."""
    _, analysis = _prepare(request)
    target = TargetSpec(kind=request.target.kind, value=request.target.value)
    try:
        result, ledger = optimizer.recommend(analysis, target, _ledger(request.ledger))
    except InvalidPinError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())
    return _solution(result, ledger)


@router.post("/pin")
async def pin_tier(request: PinRequest):
    """Pin a tier's multiplier and re-solve the remaining tiers."""
    _, analysis = _prepare(request)
    target = TargetSpec(kind=request.target.kind, value=request.target.value)
    try:
        result, ledger = optimizer.pin(
            analysis, target, _ledger(request.ledger), request.tier_id, request.multiplier
        )
    except InvalidPinError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())
    return _solution(result, ledger)


@router.post("/reset")
async def reset_pins(request: RecommendRequest):
    """
    Discard all pins and solve fresh from the target.

    Works on any ledger, including one /recommend rejects.
    """
    _, analysis = _prepare(request)
    target = TargetSpec(kind=request.target.kind, value=request.target.value)
    ledger = optimizer.reset(_ledger(request.ledger))
    result, ledger = optimizer.recommend(analysis, target, ledger)
    return _solution(result, ledger)
