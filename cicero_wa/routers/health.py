from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cicero_wa.database import get_db
from cicero_wa.logging_config import get_logger
from cicero_wa.routers.webhook import get_user_menu_service
from cicero_wa.services.outbox_service import get_outbox_metrics
from cicero_wa.services.user_menu_service import UserMenuService

router = APIRouter()
logger = get_logger("health")


@router.get("/health/wa")
def wa_health(
    service: UserMenuService = Depends(get_user_menu_service),
    db: Session = Depends(get_db),
):
    try:
        outbox = get_outbox_metrics(db)
    except Exception as exc:
        logger.error("Outbox metrics unavailable", extra={"context": {"error": str(exc)}})
        outbox = {"error": "unavailable"}

    dedup = service.aggregator.get_message_dedup_stats()
    return {
        "status": "ok",
        "wa_outbox": outbox,
        "message_deduplication": {
            **dedup,
            "ttl_hours": round(dedup["id_dedup"]["ttl_ms"] / 3600000),
        },
        "user_menu": service.get_stats(),
    }
