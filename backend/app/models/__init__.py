# Import models here so Alembic can discover metadata.
from app.models.user import User  # noqa: F401
from app.models.developer_access import DeveloperAccess  # noqa: F401

# Chapters + memberships
from app.models.chapter import Chapter  # noqa: F401
from app.models.chapter_membership import ChapterMembership  # noqa: F401
from app.models.chapter_branding import ChapterBranding  # noqa: F401
from app.models.invitation import Invitation, InvitationUsage  # noqa: F401

# Executive dashboard
from app.models.task import Task  # noqa: F401
from app.models.event import Event, EventRSVP  # noqa: F401
from app.models.vendor import Vendor  # noqa: F401
from app.models.recruit import Recruit  # noqa: F401

# Social feed
from app.models.post import CommentLike, Post, PostComment, PostLike  # noqa: F401

# Dues + announcements
from app.models.dues import DuesAssignment, DuesCycle  # noqa: F401
from app.models.announcement import Announcement, AnnouncementRecipient  # noqa: F401
