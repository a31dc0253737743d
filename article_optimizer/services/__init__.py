"""Pipeline services."""

from .ai_client import AIClient, get_ai_client
from .article_store import ArticleStore
from .content_optimizer import ContentOptimizer
from .reference_harvester import ReferenceHarvester
from .task_runner import PipelineTaskRunner

__all__ = [
    'AIClient',
    'get_ai_client',
    'ArticleStore',
    'ContentOptimizer',
    'ReferenceHarvester',
    'PipelineTaskRunner',
]
