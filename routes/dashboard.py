import logging

from fastapi import APIRouter, Depends
from pymongo.database import Database

from database import get_db
from routes.common import ok
from security import get_current_admin
from stats import chart_data, dashboard_stats, suggestions

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(get_current_admin)])


@router.get("/stats")
def get_stats(db: Database = Depends(get_db)):
    stats = dashboard_stats(db)
    logger.info("Dashboard stats: %s", stats)
    return ok(stats)


@router.get("/chart-data")
def get_chart_data(db: Database = Depends(get_db)):
    return ok(chart_data(db))


@router.get("/ai-suggestions")
def get_suggestions(db: Database = Depends(get_db)):
    return ok(suggestions(db))
