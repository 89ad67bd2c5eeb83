"""
Citation Tasks
Extract citations and brand mentions from stored engine responses
"""

from typing import Dict

from celery.utils.log import get_task_logger

from app.workers.celery_app import celery_app, run_async
from app.utils.database import get_db_context, get_sync_db
from app.models import QueryResult, QueryRun
from app.services.citation_service import CitationService

logger = get_task_logger(__name__)


async def _process_result(query_result_id: str) -> Dict:
    async with get_db_context() as db:
        summary = await CitationService(db).process_query_result(query_result_id)
    return {
        "query_result_id": summary.query_result_id,
        "citations": len(summary.citations),
        "brand_citations": summary.brand_citation_count,
        "competitor_citations": summary.competitor_citation_count,
        "mentions": len(summary.mentions),
    }


@celery_app.task(
    bind=True,
    name="app.workers.tasks.citation_tasks.extract_citations",
    max_retries=2,
    default_retry_delay=10,
)
def extract_citations(self, query_result_id: str) -> Dict:
    """
    Run the extraction pass for one query result.

    Args:
        query_result_id: UUID of the QueryResult to process

    Returns:
        Dict with extraction counts
    """
    try:
        return run_async(_process_result(query_result_id))
    except ValueError as e:
        logger.warning(f"Skipping extraction for {query_result_id}: {e}")
        return {"error": str(e)}
    except Exception as e:
        logger.exception(f"Citation extraction failed for {query_result_id}: {e}")
        raise self.retry(exc=e)


@celery_app.task(
    bind=True,
    name="app.workers.tasks.citation_tasks.extract_run_citations",
    max_retries=2,
    default_retry_delay=30,
)
def extract_run_citations(self, query_run_id: str, analyze: bool = True) -> Dict:
    """
    Run the extraction pass for every result of a query run, then queue
    optimization analysis for the run.

    Args:
        query_run_id: UUID of the QueryRun
        analyze: Queue analyze_optimization once extraction finishes

    Returns:
        Dict with per-run counts
    """
    db = get_sync_db()

    try:
        query_run = db.query(QueryRun).filter(QueryRun.id == query_run_id).first()
        if not query_run:
            return {"error": "Query run not found"}

        project_id = str(query_run.project_id)
        result_ids = [
            str(row.id)
            for row in db.query(QueryResult.id)
            .filter(QueryResult.query_run_id == query_run.id)
            .order_by(QueryResult.created_at)
            .all()
        ]
    except Exception as e:
        logger.exception(f"Could not load query run {query_run_id}: {e}")
        db.rollback()
        raise self.retry(exc=e)
    finally:
        db.close()

    processed = 0
    failed = 0
    for result_id in result_ids:
        try:
            run_async(_process_result(result_id))
            processed += 1
        except Exception as e:
            failed += 1
            logger.error(f"Extraction failed for result {result_id}: {e}")

    logger.info(f"Extracted {processed}/{len(result_ids)} results for run {query_run_id}")

    if analyze:
        from app.workers.tasks.optimization_tasks import analyze_optimization
        analyze_optimization.delay(project_id, query_run_id)

    return {
        "query_run_id": query_run_id,
        "total": len(result_ids),
        "processed": processed,
        "failed": failed,
    }
