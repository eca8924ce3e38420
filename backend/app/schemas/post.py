from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

POST_TYPES = ("text", "image", "text_image")


class PostCreate(BaseModel):
    content: Optional[str] = None
    post_type: str = "text"
    image_url: Optional[str] = Field(default=None, max_length=1024)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class AuthorOut(BaseModel):
    id: UUID
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None


class CommentOut(BaseModel):
    id: UUID
    post_id: UUID
    parent_comment_id: Optional[UUID] = None
    content: str
    author: AuthorOut
    likes_count: int = 0
    is_liked: bool = False
    is_author: bool = False
    created_at: datetime
    replies: List["CommentOut"] = Field(default_factory=list)


class PostOut(BaseModel):
    id: UUID
    chapter_id: UUID
    content: Optional[str] = None
    post_type: str
    image_url: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    author: AuthorOut
    likes_count: int = 0
    comments_count: int = 0
    is_liked: bool = False
    is_author: bool = False
    created_at: datetime
    updated_at: datetime
    comments_preview: List[CommentOut] = Field(default_factory=list)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class FeedOut(BaseModel):
    posts: List[PostOut]
    pagination: Pagination


class CommentCreate(BaseModel):
    content: Optional[str] = None
    parent_comment_id: Optional[UUID] = None


class CommentListOut(BaseModel):
    comments: List[CommentOut]
    pagination: Pagination


class LikeOut(BaseModel):
    liked: bool
    likes_count: int
