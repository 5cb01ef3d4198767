"""Public API exports for graphnmf package."""

# Core data structures
from .graph import BipartiteRatingGraph, Vertex, VertexClass
from .ratings import RatingData, load_ratings_file

# Factorization engine
from .aggregator import NormalizationAccumulators
from .update import (
    NormalizationPolicy, DegenerateDenominatorError, nmf_update
)
from .engine import TaskEngine
from .nmf import NMF, DriverState

# Prediction and configuration
from .predict import predict, make_predictor
from .config import NMFConfig, load_config
