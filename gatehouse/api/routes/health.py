from fastapi import APIRouter, Depends

from gatehouse.core.config import get_settings
from gatehouse.services.correlation_table import PendingCorrelationTable
from gatehouse.services.registry import get_correlation_table

router = APIRouter()
settings = get_settings()


@router.get("/health")
def health(correlations: PendingCorrelationTable = Depends(get_correlation_table)):
    return {
        "status": "ok",
        "environment": settings.ENVIRONMENT,
        "transport": settings.NOTIFICATION_TRANSPORT,
        "pendingCorrelations": len(correlations),
    }
