"""
Build Pipeline Module

Runs the export of every configured dataset:
- Fetch and shape checks of the input
- Item, listing, entity and search output
- Optional post-build verification
- Progress reporting and build summary
"""

from sitegen.pipeline.orchestrator import (
    PipelineOrchestrator,
    DatasetRun,
    BuildResult,
    StepStatus,
    run_pipeline,
)

__all__ = [
    "PipelineOrchestrator",
    "DatasetRun",
    "BuildResult",
    "StepStatus",
    "run_pipeline",
]
