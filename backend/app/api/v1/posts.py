from __future__ import annotations

import logging
import uuid
from typing import Dict, Iterable, List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.chapter import get_active_membership, get_current_chapter
from app.api.deps.permissions import membership_has, require_permissions
from app.api.v1.auth import get_current_user
from app.auth.permissions import PERM
from app.core.comments import build_comment_tree, resolve_parent_id
from app.core.pagination import page_window, pagination_meta
from app.db.session import get_db
from app.models.chapter import Chapter
from app.models.chapter_membership import ChapterMembership
from app.models.post import CommentLike, Post, PostComment, PostLike
from app.models.user import User
from app.schemas.post import (
    POST_TYPES,
    AuthorOut,
    CommentCreate,
    CommentListOut,
    CommentOut,
    FeedOut,
    LikeOut,
    Pagination,
    PostCreate,
    PostOut,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/posts", tags=["posts"])

FEED_DEFAULT_LIMIT = 10
FEED_MAX_LIMIT = 50
COMMENTS_DEFAULT_LIMIT = 20
COMMENTS_MAX_LIMIT = 100
PREVIEW_COMMENTS = 2


# =========================================================
# Helpers
# =========================================================
async def _authors(db: AsyncSession, user_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, AuthorOut]:
    ids = set(user_ids)
    if not ids:
        return {}
    users = (await db.execute(select(User).where(User.id.in_(ids)))).scalars().all()
    return {u.id: AuthorOut(id=u.id, full_name=u.display_name, avatar_url=u.avatar_url) for u in users}


async def _count_by(db: AsyncSession, column, ids: List[uuid.UUID]) -> Dict[uuid.UUID, int]:
    if not ids:
        return {}
    rows = (await db.execute(select(column, func.count()).where(column.in_(ids)).group_by(column))).all()
    return {k: int(n) for k, n in rows}


async def _liked_by(db: AsyncSession, column, user_column, ids: List[uuid.UUID], user_id: uuid.UUID) -> set:
    if not ids:
        return set()
    stmt = select(column).where(column.in_(ids), user_column == user_id)
    return set((await db.execute(stmt)).scalars().all())


async def _serialize_comments(
    db: AsyncSession, comments: List[PostComment], user_id: uuid.UUID
) -> List[dict]:
    ids = [c.id for c in comments]
    authors = await _authors(db, [c.author_id for c in comments])
    likes = await _count_by(db, CommentLike.comment_id, ids)
    liked = await _liked_by(db, CommentLike.comment_id, CommentLike.user_id, ids, user_id)

    return [
        {
            "id": c.id,
            "post_id": c.post_id,
            "parent_comment_id": c.parent_comment_id,
            "content": c.content,
            "author": authors.get(c.author_id) or AuthorOut(id=c.author_id),
            "likes_count": likes.get(c.id, 0),
            "is_liked": c.id in liked,
            "is_author": c.author_id == user_id,
            "created_at": c.created_at,
        }
        for c in comments
    ]


async def _load_post_for_member(
    db: AsyncSession, post_id: uuid.UUID, user: User
) -> Tuple[Post, ChapterMembership]:
    """The post plus the caller's membership in the post's chapter."""
    post = await db.get(Post, post_id)
    if post is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")

    membership = await get_active_membership(db, post.chapter_id, user.id)
    if membership is None or not membership_has(membership, PERM.FEED_READ):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return post, membership


async def _load_comment(db: AsyncSession, post: Post, comment_id: uuid.UUID) -> PostComment:
    comment = (
        await db.execute(
            select(PostComment).where(PostComment.id == comment_id, PostComment.post_id == post.id)
        )
    ).scalar_one_or_none()
    if comment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")
    return comment


async def _posts_out(db: AsyncSession, posts: List[Post], user_id: uuid.UUID) -> List[PostOut]:
    ids = [p.id for p in posts]
    authors = await _authors(db, [p.author_id for p in posts])
    likes = await _count_by(db, PostLike.post_id, ids)
    comments = await _count_by(db, PostComment.post_id, ids)
    liked = await _liked_by(db, PostLike.post_id, PostLike.user_id, ids, user_id)

    out: List[PostOut] = []
    for p in posts:
        preview = (
            await db.execute(
                select(PostComment)
                .where(PostComment.post_id == p.id)
                .order_by(PostComment.created_at.desc())
                .limit(PREVIEW_COMMENTS)
            )
        ).scalars().all()

        out.append(
            PostOut(
                id=p.id,
                chapter_id=p.chapter_id,
                content=p.content,
                post_type=p.post_type,
                image_url=p.image_url,
                metadata=p.extra_metadata or {},
                author=authors.get(p.author_id) or AuthorOut(id=p.author_id),
                likes_count=likes.get(p.id, 0),
                comments_count=comments.get(p.id, 0),
                is_liked=p.id in liked,
                is_author=p.author_id == user_id,
                created_at=p.created_at,
                updated_at=p.updated_at,
                comments_preview=[CommentOut(**c) for c in await _serialize_comments(db, list(preview), user_id)],
            )
        )
    return out


# =========================================================
# Feed
# =========================================================
@router.get("", response_model=FeedOut)
async def get_feed(
    page: int = Query(default=1),
    limit: int = Query(default=FEED_DEFAULT_LIMIT),
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    membership: ChapterMembership = Depends(require_permissions(PERM.FEED_READ)),
):
    window = page_window(page, limit, default_limit=FEED_DEFAULT_LIMIT, max_limit=FEED_MAX_LIMIT)

    total = int(
        (await db.execute(select(func.count(Post.id)).where(Post.chapter_id == chapter.id))).scalar() or 0
    )
    posts = (
        await db.execute(
            select(Post)
            .where(Post.chapter_id == chapter.id)
            .order_by(Post.created_at.desc(), Post.id)
            .offset(window.offset)
            .limit(window.limit)
        )
    ).scalars().all()

    return FeedOut(
        posts=await _posts_out(db, list(posts), membership.user_id),
        pagination=Pagination(**pagination_meta(window, total)),
    )


@router.post("", response_model=PostOut, status_code=status.HTTP_201_CREATED)
async def create_post(
    payload: PostCreate,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    membership: ChapterMembership = Depends(require_permissions(PERM.FEED_POST)),
):
    post_type = (payload.post_type or "").strip().lower()
    if post_type not in POST_TYPES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid post type")

    content = (payload.content or "").strip()
    image_url = (payload.image_url or "").strip() or None

    if post_type == "image" and not image_url:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Image URL required for image posts")
    if post_type == "text" and not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Content required for text posts")
    if post_type == "text_image" and not (content or image_url):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Content or image URL required")

    post = Post(
        chapter_id=chapter.id,
        author_id=membership.user_id,
        content=content,
        post_type=post_type,
        image_url=image_url,
        extra_metadata=dict(payload.metadata or {}),
    )
    db.add(post)
    await db.commit()
    await db.refresh(post)

    logger.info("Post created", extra={"chapter_id": chapter.id, "user_id": membership.user_id})
    return (await _posts_out(db, [post], membership.user_id))[0]


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post(
    post_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    post, _ = await _load_post_for_member(db, post_id, user)
    if post.author_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only delete your own posts")

    await db.delete(post)
    await db.commit()

    logger.info("Post deleted", extra={"chapter_id": post.chapter_id, "user_id": user.id})
    return None


@router.post("/{post_id}/like", response_model=LikeOut)
async def toggle_post_like(
    post_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    post, _ = await _load_post_for_member(db, post_id, user)

    existing = (
        await db.execute(select(PostLike).where(PostLike.post_id == post.id, PostLike.user_id == user.id))
    ).scalar_one_or_none()
    if existing is not None:
        await db.delete(existing)
        liked = False
    else:
        db.add(PostLike(post_id=post.id, user_id=user.id))
        liked = True
    await db.commit()

    likes = await _count_by(db, PostLike.post_id, [post.id])
    return LikeOut(liked=liked, likes_count=likes.get(post.id, 0))


# =========================================================
# Comments
# =========================================================
@router.get("/{post_id}/comments", response_model=CommentListOut)
async def list_comments(
    post_id: uuid.UUID,
    page: int = Query(default=1),
    limit: int = Query(default=COMMENTS_DEFAULT_LIMIT),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Top-level comments oldest first, one page at a time, each with all of its replies."""
    post, _ = await _load_post_for_member(db, post_id, user)
    window = page_window(page, limit, default_limit=COMMENTS_DEFAULT_LIMIT, max_limit=COMMENTS_MAX_LIMIT)

    top_level = (PostComment.post_id == post.id, PostComment.parent_comment_id.is_(None))
    total = int((await db.execute(select(func.count(PostComment.id)).where(*top_level))).scalar() or 0)

    roots = (
        await db.execute(
            select(PostComment)
            .where(*top_level)
            .order_by(PostComment.created_at.asc(), PostComment.id)
            .offset(window.offset)
            .limit(window.limit)
        )
    ).scalars().all()

    replies: List[PostComment] = []
    if roots:
        replies = list(
            (
                await db.execute(
                    select(PostComment)
                    .where(PostComment.parent_comment_id.in_([r.id for r in roots]))
                    .order_by(PostComment.created_at.asc(), PostComment.id)
                )
            ).scalars().all()
        )

    tree = build_comment_tree(await _serialize_comments(db, list(roots) + replies, user.id))
    return CommentListOut(
        comments=[CommentOut(**node) for node in tree],
        pagination=Pagination(**pagination_meta(window, total)),
    )


@router.post("/{post_id}/comments", response_model=CommentOut, status_code=status.HTTP_201_CREATED)
async def create_comment(
    post_id: uuid.UUID,
    payload: CommentCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    content = (payload.content or "").strip()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Comment content is required")

    post, _ = await _load_post_for_member(db, post_id, user)

    parent_id: Optional[uuid.UUID] = None
    if payload.parent_comment_id is not None:
        parent = (
            await db.execute(
                select(PostComment).where(
                    PostComment.id == payload.parent_comment_id,
                    PostComment.post_id == post.id,
                )
            )
        ).scalar_one_or_none()
        if parent is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Parent comment not found")
        parent_id = resolve_parent_id(parent)

    comment = PostComment(post_id=post.id, author_id=user.id, parent_comment_id=parent_id, content=content)
    db.add(comment)
    await db.commit()
    await db.refresh(comment)

    return CommentOut(**(await _serialize_comments(db, [comment], user.id))[0])


@router.delete("/{post_id}/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(
    post_id: uuid.UUID,
    comment_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    post, _ = await _load_post_for_member(db, post_id, user)
    comment = await _load_comment(db, post, comment_id)
    if comment.author_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only delete your own comments")

    # replies go with it (FK cascade)
    await db.delete(comment)
    await db.commit()
    return None


@router.post("/{post_id}/comments/{comment_id}/like", response_model=LikeOut)
async def toggle_comment_like(
    post_id: uuid.UUID,
    comment_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    post, _ = await _load_post_for_member(db, post_id, user)
    comment = await _load_comment(db, post, comment_id)

    existing = (
        await db.execute(
            select(CommentLike).where(CommentLike.comment_id == comment.id, CommentLike.user_id == user.id)
        )
    ).scalar_one_or_none()
    if existing is not None:
        await db.delete(existing)
        liked = False
    else:
        db.add(CommentLike(comment_id=comment.id, user_id=user.id))
        liked = True
    await db.commit()

    likes = await _count_by(db, CommentLike.comment_id, [comment.id])
    return LikeOut(liked=liked, likes_count=likes.get(comment.id, 0))
