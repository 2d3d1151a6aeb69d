import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from sirtis.common.constants import DocumentLevel


class DocumentCreate(BaseModel):
    filename: str = Field(..., min_length=1, max_length=255)
    original_name: str = Field(..., min_length=1, max_length=255)
    mime_type: str = Field(..., min_length=1, max_length=150)
    size: int = Field(..., ge=0)
    path: str = Field(..., min_length=1, max_length=500)
    url: Optional[str] = Field(None, max_length=500)
    category: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    is_public: bool = False
    access_level: DocumentLevel = DocumentLevel.internal


class DocumentUpdate(BaseModel):
    original_name: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    tags: Optional[list[str]] = None
    is_public: Optional[bool] = None
    access_level: Optional[DocumentLevel] = None


class DocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    filename: str
    original_name: str
    mime_type: str
    size: int
    path: str
    url: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[list[str]] = None
    is_public: bool
    access_level: str
    uploaded_by: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime
    can_edit: bool = False
    can_delete: bool = False
