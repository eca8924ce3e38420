# app/core/comments.py
"""
Comments nest one level: a top-level comment and its replies. Replying to a
reply attaches the new comment to the top-level ancestor instead.
"""
from __future__ import annotations

import uuid
from typing import Any, Iterable, Optional


def resolve_parent_id(parent: Any) -> Optional[uuid.UUID]:
    """Return the id a new reply should hang off, given the requested parent row."""
    if parent is None:
        return None
    return parent.parent_comment_id or parent.id


def build_comment_tree(comments: Iterable[dict]) -> list[dict]:
    """
    ``comments`` are serialized dicts (id, parent_comment_id, ...), oldest
    first. Returns top-level comments, each with a ``replies`` list. Replies
    whose parent is not in the batch are dropped.
    """
    roots: list[dict] = []
    by_id: dict[Any, dict] = {}

    items = list(comments)
    for c in items:
        if c.get("parent_comment_id") is None:
            node = {**c, "replies": []}
            by_id[c["id"]] = node
            roots.append(node)

    for c in items:
        parent_id = c.get("parent_comment_id")
        if parent_id is None:
            continue
        parent = by_id.get(parent_id)
        if parent is not None:
            parent["replies"].append({**c, "replies": []})

    return roots
