"""
Optimization Tasks
Analyze a completed run and persist recommendations, content gaps and score
"""

from typing import Dict

from celery.utils.log import get_task_logger

from app.workers.celery_app import celery_app, run_async
from app.utils.database import get_db_context
from app.models import AnalysisSource
from app.services.ai_analyzer import AiAnalyzer
from app.services.data_loader import OptimizationDataLoader
from app.services.optimization_store import OptimizationStore
from app.services.rule_engine import analyze_with_rules

logger = get_task_logger(__name__)


async def run_optimization(project_id: str, query_run_id: str, source: AnalysisSource) -> Dict:
    """Load -> analyze -> expire -> save -> upsert gaps -> save score, in one transaction"""
    async with get_db_context() as db:
        loader = OptimizationDataLoader(db)
        context = await loader.load_analysis_context(project_id, query_run_id)
        data = await loader.load_analysis_data(project_id, query_run_id)

        if source == AnalysisSource.AI_POWERED:
            result = await AiAnalyzer().analyze(data, context)
        else:
            result = analyze_with_rules(data)

        store = OptimizationStore(db)
        expired = await store.expire_recommendations(project_id, data, source)
        saved = await store.save_recommendations(project_id, query_run_id, result.recommendations)
        gaps = await store.upsert_content_gaps(project_id, result.content_gaps)
        await store.save_score(project_id, query_run_id, result.score)

    return {
        "project_id": project_id,
        "query_run_id": query_run_id,
        "source": source.value,
        "recommendations": len(saved),
        "expired": expired,
        "content_gaps": gaps,
        "overall_score": result.score.overall_score,
    }


@celery_app.task(
    bind=True,
    name="app.workers.tasks.optimization_tasks.analyze_optimization",
    max_retries=2,
    default_retry_delay=30,
)
def analyze_optimization(self, project_id: str, query_run_id: str, source: str = "rule_based") -> Dict:
    """
    Run optimization analysis for a completed query run.

    Args:
        project_id: UUID of the project
        query_run_id: UUID of the completed QueryRun
        source: "rule_based" or "ai_powered"

    Returns:
        Dict with what was stored
    """
    try:
        analysis_source = AnalysisSource(source)
    except ValueError:
        return {"error": f"Unknown analysis source: {source}"}

    try:
        summary = run_async(run_optimization(project_id, query_run_id, analysis_source))
    except ValueError as e:
        logger.warning(f"Skipping optimization for project {project_id}: {e}")
        return {"error": str(e)}
    except Exception as e:
        logger.exception(f"Optimization analysis failed for run {query_run_id}: {e}")
        raise self.retry(exc=e)

    logger.info(
        f"Run {query_run_id}: {summary['recommendations']} recommendations, "
        f"{summary['content_gaps']} gaps, score {summary['overall_score']}"
    )
    return summary
