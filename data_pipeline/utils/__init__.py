"""
Data Pipeline Utilities - Metrics and helper functions
"""

from data_pipeline.utils.metrics import PipelineMetrics, pipeline_metrics

__all__ = [
    "PipelineMetrics",
    "pipeline_metrics",
]
