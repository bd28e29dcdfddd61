"""站点发现流水线"""

from .runner import DiscoveryPipeline, PipelineResult, collect_category_records, run_pipeline

__all__ = [
    "DiscoveryPipeline",
    "PipelineResult",
    "collect_category_records",
    "run_pipeline",
]
