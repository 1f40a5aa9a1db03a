import uuid

from sqlalchemy import JSON, Column, DateTime, Float, Integer, Text, Uuid
from sqlalchemy.sql import func

from cicero_wa.database import Base


class OutboxMessage(Base):
    __tablename__ = "wa_outbox_messages"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    chat_id = Column(Text, nullable=False)
    payload_json = Column(JSON, nullable=False)
    priority = Column(Integer, nullable=False, default=1)
    status = Column(Text, nullable=False, default="PENDING")
    attempts = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=5)
    backoff_seconds = Column(Float, nullable=False, default=2.0)
    next_attempt_at = Column(DateTime(timezone=True))
    last_error = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
