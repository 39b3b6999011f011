"""
Pydantic schemas for payloads received from external services
"""
from typing import List, Optional

from pydantic import BaseModel


class SourceResponse(BaseModel):
    """
    Pydantic schema for the content source envelope.
    Older deployments return posts under `tweets` instead of `data`.
    """
    success: bool
    data: Optional[List[dict]] = None
    tweets: Optional[List[dict]] = None
    error: Optional[str] = None
    message: Optional[str] = None

    @property
    def posts(self) -> List[dict]:
        return self.data or self.tweets or []
