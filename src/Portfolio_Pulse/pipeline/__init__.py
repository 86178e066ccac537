"""Sequential batch analysis pipeline: job queue, cooldown, scheduler, joint call."""

from Portfolio_Pulse.pipeline.cooldown import CooldownTimer
from Portfolio_Pulse.pipeline.job_queue import JobQueue
from Portfolio_Pulse.pipeline.joint import JointAnalysisAdapter
from Portfolio_Pulse.pipeline.scheduler import (
    BatchAnalysisRun,
    NarrativeAnalyst,
    PriceSeriesSource,
)

__all__ = [
    "BatchAnalysisRun",
    "CooldownTimer",
    "JobQueue",
    "JointAnalysisAdapter",
    "NarrativeAnalyst",
    "PriceSeriesSource",
]
