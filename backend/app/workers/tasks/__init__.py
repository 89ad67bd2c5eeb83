"""
Celery Tasks
"""

from .citation_tasks import extract_citations, extract_run_citations
from .optimization_tasks import analyze_optimization

__all__ = [
    "extract_citations",
    "extract_run_citations",
    "analyze_optimization",
]
