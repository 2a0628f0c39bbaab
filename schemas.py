"""
Database Schemas for the Agency Portfolio

Each Pydantic model = one MongoDB collection (lowercased class name).
Write requests reuse the same models; the stored documents and the JSON wire
format both use camelCase keys (displayName, createdAt).
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

DEFAULT_CATEGORY_COLOR = "blue"
URL_SAFE_NAME = r"^[A-Za-z0-9_-]+$"


class _Payload(BaseModel):
    # extra fields are ignored; surrounding whitespace never counts as content
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True, populate_by_name=True)


# Content
class PortfolioItem(_Payload):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1, description="Category name, not checked against the category collection")
    image: str = Field(..., min_length=1, description="Absolute URL or /uploads/ path of an image or video")


class PortfolioItemUpdate(_Payload):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = Field(None, min_length=1)
    image: Optional[str] = Field(None, min_length=1)

    def changes(self) -> dict:
        return self.model_dump(exclude_none=True)


class Category(_Payload):
    name: str = Field(..., min_length=1, pattern=URL_SAFE_NAME, description="Unique URL-safe token")
    display_name: str = Field(..., alias="displayName", min_length=1)
    color: str = Field(DEFAULT_CATEGORY_COLOR, min_length=1, description="Theme tag, e.g. blue, cyan")


class CategoryUpdate(_Payload):
    name: Optional[str] = Field(None, min_length=1, pattern=URL_SAFE_NAME)
    display_name: Optional[str] = Field(None, alias="displayName", min_length=1)
    color: Optional[str] = Field(None, min_length=1)

    def changes(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# Inbox
class ContactSubmission(_Payload):
    name: str = Field(..., min_length=1)
    email: EmailStr
    message: str = Field(..., min_length=1)


# Media library
class UploadedFile(_Payload):
    url: str = Field(..., min_length=1, description="Public URL returned by the media host or /uploads/ path")
    filename: str = Field(..., min_length=1, description="Stored name")
    original_name: str = Field(..., alias="originalName")
    size: int = Field(..., ge=0)
    content_type: Optional[str] = Field(None, alias="contentType")


# Auth
class AdminLogin(BaseModel):
    password: str


class AdminToken(BaseModel):
    success: bool = True
    access_token: str
    token_type: str = "bearer"
    expires_in: int
