from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import List, Optional, Any
import uuid

class ProfileSummary(BaseModel):
    """A user's profile merged in memory with their skill rows (join key: user_id)."""
    model_config = ConfigDict(from_attributes=True)

    user_id: uuid.UUID
    full_name: str = ""
    bio: Optional[str] = Field(None, description="Short bio or summary")
    location: Optional[str] = None
    avatar_url: Optional[str] = None
    skills_offered: List[str] = Field(default_factory=list)
    skills_wanted: List[str] = Field(default_factory=list)

    @model_validator(mode='before')
    @classmethod
    def fill_missing_lists(cls, data: Any) -> Any:
        if isinstance(data, dict):
            for field_name in ['skills_offered', 'skills_wanted']:
                if data.get(field_name) is None:
                    data[field_name] = []
            if data.get('full_name') is None:
                data['full_name'] = ""
        return data
