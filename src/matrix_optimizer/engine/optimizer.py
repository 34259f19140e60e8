"""
Matrix Optimizer - end-to-end pipeline from sales CSV to recommended matrix.

Pipeline:
1. Ingest the CSV export into PartRecords
2. Aggregate records into the matrix's cost tiers
3. Resolve the target profit (or reuse the ledger's stored one)
4. Solve for new tier multipliers, honoring pinned tiers
"""
import logging
from typing import Optional, Union

from ..config.settings import get_settings, Settings
from .aggregator import aggregate_tiers
from .errors import InvalidPinError
from .ingest import ingest_csv
from .ledger import OverrideLedger, validate_ledger, validate_pin
from .models import (
    IngestResult,
    MatrixAnalysis,
    PartRecord,
    PricingTier,
    RecommendationSet,
    TargetSpec,
)
from .solver import AllocationSolver
from .targets import resolve_target_profit

logger = logging.getLogger(__name__)


class MatrixOptimizer:
    """
    Facade over ingestion, aggregation, target resolution and solving.

    Holds no session state: the OverrideLedger is passed in and a new one
    is handed back from every call that can change it.
    """

    def __init__(self, matrix: Optional[list[PricingTier]] = None, settings: Optional[Settings] = None):
        # Local import keeps the service layer out of the engine's import cycle
        from ..services.matrix_service import default_matrix

        self.settings = settings or get_settings()
        self.matrix = list(matrix) if matrix else default_matrix()
        self.solver = AllocationSolver(self.settings)

    def ingest(self, text: str) -> IngestResult:
        """Parse a CSV export. Raises an IngestError subclass on fatal problems."""
        return ingest_csv(text, self.settings)

    def analyze(
        self,
        records: Union[IngestResult, list[PartRecord]],
        matrix: Optional[list[PricingTier]] = None,
    ) -> MatrixAnalysis:
        """Aggregate records into tiers of the given (or the optimizer's) matrix."""
        if isinstance(records, IngestResult):
            records = records.records
        return aggregate_tiers(matrix or self.matrix, records)

    def resolve_target(
        self,
        analysis: MatrixAnalysis,
        target: TargetSpec,
        ledger: Optional[OverrideLedger] = None,
    ) -> tuple[float, OverrideLedger]:
        """
        Target profit for the next solve.

        While any tier is pinned the ledger's stored target is reused;
        otherwise it is computed fresh from the TargetSpec and stored.

        Raises InvalidPinError when a lock names an unknown tier or holds a
        multiplier outside the pin range.
        """
        ledger = self._checked(analysis, ledger or OverrideLedger())
        if ledger.has_locks and ledger.stored_target_profit is not None:
            return ledger.stored_target_profit, ledger

        target_profit = resolve_target_profit(
            target, analysis.total_profit, analysis.total_cost, self.settings
        )
        logger.debug("Resolved %s target %.2f -> target profit %.2f", target.kind, target.value, target_profit)
        return target_profit, ledger.with_target(target_profit)

    def _checked(self, analysis: MatrixAnalysis, ledger: OverrideLedger) -> OverrideLedger:
        try:
            return validate_ledger(ledger, (t.id for t in analysis.tiers), self.settings)
        except InvalidPinError as e:
            logger.warning("Rejected ledger: %s", e.message)
            raise

    def recommend(
        self,
        analysis: MatrixAnalysis,
        target: TargetSpec,
        ledger: Optional[OverrideLedger] = None,
    ) -> tuple[RecommendationSet, OverrideLedger]:
        """Solve for a recommended matrix. Returns the result and the updated ledger."""
        target_profit, ledger = self.resolve_target(analysis, target, ledger)
        result = self.solver.solve(analysis, target_profit, ledger.locks)
        return result, ledger

    def pin(
        self,
        analysis: MatrixAnalysis,
        target: TargetSpec,
        ledger: Optional[OverrideLedger],
        tier_id: int,
        multiplier: float,
    ) -> tuple[RecommendationSet, OverrideLedger]:
        """
        Pin one tier to a manual multiplier and re-solve the rest.

        Raises InvalidPinError (ledger untouched) for an out-of-range
        multiplier or a tier id not in the analysis.
        """
        ledger = ledger or OverrideLedger()
        try:
            value = validate_pin(multiplier, self.settings)
        except InvalidPinError as e:
            logger.warning("Rejected pin for tier %s: %s", tier_id, e.message)
            raise

        if tier_id not in {t.id for t in analysis.tiers}:
            logger.warning("Rejected pin for unknown tier %s", tier_id)
            raise InvalidPinError(f"Tier {tier_id} does not exist in the current matrix")

        if ledger.stored_target_profit is None:
            _, ledger = self.resolve_target(analysis, target, ledger)

        ledger = ledger.with_lock(tier_id, value)
        logger.info("Pinned tier %d at %.2fx", tier_id, value)
        return self.recommend(analysis, target, ledger)

    def unpin(
        self,
        analysis: MatrixAnalysis,
        target: TargetSpec,
        ledger: OverrideLedger,
        tier_id: int,
    ) -> tuple[RecommendationSet, OverrideLedger]:
        """Release a single pin and re-solve against the stored target."""
        ledger = ledger.without_lock(tier_id)
        if not ledger.has_locks:
            ledger = ledger.cleared()
        return self.recommend(analysis, target, ledger)

    def reset(self, ledger: Optional[OverrideLedger] = None) -> OverrideLedger:
        """Discard all pins and the stored target."""
        return (ledger or OverrideLedger()).cleared()

    def run(self, text: str, target: TargetSpec) -> tuple[IngestResult, MatrixAnalysis, RecommendationSet]:
        """Ingest, aggregate and solve in one call with a fresh ledger."""
        ingest = self.ingest(text)
        analysis = self.analyze(ingest)
        result, _ = self.recommend(analysis, target)
        return ingest, analysis, result
