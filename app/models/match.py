import uuid
import enum
from sqlalchemy import Column, String, Text, TIMESTAMP, UniqueConstraint, CheckConstraint, Index, func
from sqlalchemy.dialects.postgresql import UUID
from app.db.base import Base

class ConnectionStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


def make_pair_key(user_1: uuid.UUID, user_2: uuid.UUID) -> str:
    """Canonical key for the unordered pair {user_1, user_2}."""
    low, high = sorted((str(user_1), str(user_2)))
    return f"{low}:{high}"


class Connection(Base):
    """A request/accept relationship between two users. No row means no connection."""
    __tablename__ = "matches"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_a_id = Column(UUID(as_uuid=True), nullable=False)  # initiator
    user_b_id = Column(UUID(as_uuid=True), nullable=False)  # counterpart
    pair_key = Column(String(80), nullable=False)

    status = Column(String, nullable=False, default=ConnectionStatus.PENDING.value)
    reason = Column(Text)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), onupdate=func.now(), server_default=func.now())

    __table_args__ = (
        UniqueConstraint('pair_key', name='uq_match_pair'),
        CheckConstraint("status IN ('pending', 'accepted', 'rejected')", name='ck_match_status'),
        CheckConstraint("user_a_id <> user_b_id", name='ck_match_distinct_users'),
        Index('ix_match_user_a_status', 'user_a_id', 'status'),
        Index('ix_match_user_b_status', 'user_b_id', 'status'),
    )

    def other_user_id(self, user_id: uuid.UUID) -> uuid.UUID:
        return self.user_b_id if self.user_a_id == user_id else self.user_a_id

    def has_participant(self, user_id: uuid.UUID) -> bool:
        return user_id in (self.user_a_id, self.user_b_id)
