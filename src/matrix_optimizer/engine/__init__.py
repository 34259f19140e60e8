"""Engine subpackage - ingestion, tier aggregation and the allocation solver."""
from .optimizer import MatrixOptimizer
from .ledger import OverrideLedger
from .models import PricingTier, PartRecord, TierAnalysis, TargetSpec, RecommendationSet
from .errors import IngestError, NoHeaderFound, NoCostColumn, NoValidRows, InvalidPinError, MatrixError

__all__ = [
    'MatrixOptimizer', 'OverrideLedger',
    'PricingTier', 'PartRecord', 'TierAnalysis', 'TargetSpec', 'RecommendationSet',
    'IngestError', 'NoHeaderFound', 'NoCostColumn', 'NoValidRows', 'InvalidPinError', 'MatrixError',
]
