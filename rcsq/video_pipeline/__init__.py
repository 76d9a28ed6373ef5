from .analysis_pipeline import AnalysisPipeline, run_pipeline, run_pipeline_without_faces
from .core.progress import ProgressReporter, ProgressStream, STAGE_ORDER
from .models import PipelineResult, validate_result

__all__ = [
    "AnalysisPipeline",
    "run_pipeline",
    "run_pipeline_without_faces",
    "ProgressReporter",
    "ProgressStream",
    "STAGE_ORDER",
    "PipelineResult",
    "validate_result",
]
