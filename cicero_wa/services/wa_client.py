from typing import Optional, Protocol

import httpx

from cicero_wa.config import settings
from cicero_wa.logging_config import get_logger

logger = get_logger("wa_client")


class WaClient(Protocol):
    async def send_message(self, chat_id: str, text: str, *, idempotency_key: Optional[str] = None) -> None: ...


class WaSendError(Exception):
    def __init__(self, chat_id: str, status_code: Optional[int], detail: str):
        self.chat_id = chat_id
        self.status_code = status_code
        super().__init__(f"WhatsApp send to {chat_id} failed ({status_code}): {detail}")


class ChatflowWaClient:
    """Sends text straight through the ChatFlow HTTP API."""

    def __init__(
        self,
        *,
        api_url: Optional[str] = None,
        token: Optional[str] = None,
        instance_id: Optional[str] = None,
        timeout_seconds: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_url = api_url or settings.chatflow_api_url
        self.token = token if token is not None else settings.chatflow_token
        self.instance_id = instance_id if instance_id is not None else settings.chatflow_instance_id
        self.timeout_seconds = timeout_seconds
        self._http_client = http_client

    async def send_message(self, chat_id: str, text: str, *, idempotency_key: Optional[str] = None) -> None:
        if not self.token or not self.instance_id:
            raise WaSendError(chat_id, None, "ChatFlow token or instance_id is not configured")

        params = {
            "token": self.token,
            "instance_id": self.instance_id,
            "jid": chat_id,
            "msg": text,
        }
        if idempotency_key:
            params["msg_id"] = idempotency_key

        if self._http_client is not None:
            response = await self._http_client.get(self.api_url, params=params)
        else:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.get(self.api_url, params=params)

        logger.info(
            "ChatFlow response",
            extra={"context": {"jid": chat_id, "status": response.status_code, "body": response.text[:200]}},
        )
        if response.status_code != 200:
            raise WaSendError(chat_id, response.status_code, response.text[:200])
