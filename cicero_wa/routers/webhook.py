from fastapi import APIRouter, Depends, HTTPException, Request, status

from cicero_wa.logging_config import get_logger
from cicero_wa.schemas.webhook import WebhookRequest, WebhookResponse
from cicero_wa.services.user_menu_service import UserMenuService

router = APIRouter()
logger = get_logger("webhook")


def get_user_menu_service(request: Request) -> UserMenuService:
    service = getattr(request.app.state, "user_menu_service", None)
    if service is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="User menu service not ready")
    return service


@router.post("/webhook/wa", response_model=WebhookResponse)
async def handle_wa_webhook(
    payload: WebhookRequest,
    service: UserMenuService = Depends(get_user_menu_service),
):
    msg = payload.message
    if not msg.chat_id:
        logger.warning("Webhook without chat id", extra={"context": {"adapter": payload.adapter}})
        return WebhookResponse(success=False, message="Missing chat id")

    processed = await service.handle_message(msg, adapter=payload.adapter, allow_replay=payload.allow_replay)
    return WebhookResponse(
        success=True,
        message="Processed" if processed else "Duplicate skipped",
        processed=processed,
    )
