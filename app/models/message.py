import uuid
from sqlalchemy import Column, Text, ForeignKey, TIMESTAMP, Index, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, backref
from app.db.base import Base

class Message(Base):
    __tablename__ = "messages"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    connection_id = Column(UUID(as_uuid=True), ForeignKey("matches.id"), nullable=False)
    sender_id = Column(UUID(as_uuid=True), nullable=False)
    content = Column(Text, nullable=False)
    # Assigned by the store; authoritative for ordering
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)

    connection = relationship("Connection", backref=backref("messages", lazy="noload"))

    __table_args__ = (
        Index('ix_message_connection_created', 'connection_id', 'created_at', 'id'),
    )
