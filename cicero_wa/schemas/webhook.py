from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class InboundMessage(BaseModel):
    """Text message as delivered by a WhatsApp adapter (Baileys or wwebjs shapes)."""

    model_config = ConfigDict(populate_by_name=True)

    chat_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("chat_id", "remoteJid", "remote_jid", "from", "jid"),
    )
    message_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("message_id", "messageId", "id"),
    )
    body: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("body", "text", "message", "conversation"),
    )
    step_snapshot: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("step_snapshot", "stepSnapshot", "step", "sessionStep"),
    )
    timestamp: Optional[int] = None


class WebhookRequest(BaseModel):
    adapter: str = "chatflow"
    message: InboundMessage
    allow_replay: bool = False


class WebhookResponse(BaseModel):
    success: bool
    message: str
    processed: bool = False
