from cicero_wa.models.outbox_message import OutboxMessage
from cicero_wa.models.user import Client, User

__all__ = [
    "Client",
    "User",
    "OutboxMessage",
]
