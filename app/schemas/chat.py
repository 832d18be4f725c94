from pydantic import BaseModel, ConfigDict
from datetime import datetime
import uuid

class ChatMessage(BaseModel):
    """Wire form of a Message row, used by history, the live feed and the API."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    connection_id: uuid.UUID
    sender_id: uuid.UUID
    content: str
    created_at: datetime

    def sort_key(self):
        return (self.created_at, str(self.id))
