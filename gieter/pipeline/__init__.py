"""Pipeline modules for rating."""

from .cache import FileCache, compute_fingerprint
from .stage import Stage, StageRunner
from .filter import AlgorithmicGate, DistanceFilter
from .components import AlgorithmicScorer
from .aggregate import Aggregator, compute_final_score
from .steps import PipelineSteps
from .orchestrator import export_results, rank_listings, run_pipeline

__all__ = [
    "FileCache",
    "compute_fingerprint",
    "Stage",
    "StageRunner",
    "AlgorithmicGate",
    "DistanceFilter",
    "AlgorithmicScorer",
    "Aggregator",
    "compute_final_score",
    "PipelineSteps",
    "export_results",
    "rank_listings",
    "run_pipeline",
]
