"""Job-scoped synthesis pipeline and job runner."""

from .jobs import JobHandle, JobProgress, JobRunner, JobStatus, JobStore
from .synthesis import SynthesisContext, SynthesisResult, VideoSynthesisPipeline

__all__ = [
    "JobHandle",
    "JobProgress",
    "JobRunner",
    "JobStatus",
    "JobStore",
    "SynthesisContext",
    "SynthesisResult",
    "VideoSynthesisPipeline",
]
