# SQLModel definitions — imported here to ensure metadata is populated for Alembic.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .brand import Brand  # noqa: F401
from .user import User  # noqa: F401
from .brand_user import BrandUser  # noqa: F401
from .project import Project, ProjectShare  # noqa: F401
from .conversation import Conversation, ConversationShare, ConversationInviteLink  # noqa: F401
from .message import Message  # noqa: F401
from .guidelines import BrandGuidelines  # noqa: F401
from .quota import BrandQuota, QuotaTransaction  # noqa: F401
from .notification import Notification  # noqa: F401
