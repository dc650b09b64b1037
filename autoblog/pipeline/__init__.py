"""Task functions run by the worker pools."""

from autoblog.pipeline.generation import ContentGenerationTask, GeneratedContent
from autoblog.pipeline.publishing import PublishingTask, PublishOutcome

__all__ = [
    "ContentGenerationTask",
    "GeneratedContent",
    "PublishingTask",
    "PublishOutcome",
]
