"""Shared engine instance for the API process."""
from ..engine import MatrixOptimizer

optimizer = MatrixOptimizer()
