from cicero_wa.schemas.webhook import InboundMessage, WebhookRequest, WebhookResponse

__all__ = ["InboundMessage", "WebhookRequest", "WebhookResponse"]
