"""Metadata for objects held in the S3 upload bucket."""
from datetime import datetime
from typing import Optional

from beanie import Document, Indexed
from pydantic import BaseModel, Field


class StoredFile(Document):
    original_name: str
    key: Indexed(str, unique=True)
    mime_type: str
    file_type: str  # image, csv, pdf, other
    size: int
    bucket: str
    public_url: Optional[str] = None
    owner_id: Indexed(str)
    folder: str = "uploads"
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "files"


class ProfilePic(Document):
    """One current profile picture per user; re-uploading replaces the pointer."""

    user_id: Indexed(str, unique=True)
    file_id: str
    public_url: Optional[str] = None
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "profile_pics"
        use_state_management = True


class SignedUploadRequest(BaseModel):
    file_name: str
    content_type: str = "image/jpeg"
    folder: str = "uploads"
