from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Role(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    EDITOR = "editor"
    REVIEWER = "reviewer"
    USER = "user"


class SharePermission(str, Enum):
    READ = "read"
    WRITE = "write"


class ShareStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class ShareAction(str, Enum):
    ACCEPT = "accept"
    DECLINE = "decline"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class GuidelinesStatus(str, Enum):
    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    ARCHIVED = "archived"


class NotificationType(str, Enum):
    CONVERSATION_SHARED = "conversation_shared"
    PROJECT_SHARED = "project_shared"
    MESSAGE_SHARED = "message_shared"
    SHARE_ACCEPTED = "share_accepted"
    SHARE_DECLINED = "share_declined"
    MENTION = "mention"
    SYSTEM = "system"
    ROLE_CHANGE = "role_change"
    TEAM_INVITE = "team_invite"
    TEAM_REMOVED = "team_removed"


class QuotaType(str, Enum):
    PROMPT_TOKENS = "prompt_tokens"
    IMAGE_GENERATION = "image_generation"
    WORKFLOW_EXECUTIONS = "workflow_executions"


class TransactionType(str, Enum):
    TOPUP = "topup"
    USAGE = "usage"
    RESET = "reset"
    DEDUCTION = "deduction"


class CamelModel(BaseModel):
    """Wire model: camelCase on the wire, snake_case accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SuccessResponse(CamelModel):
    success: bool = True
    message: Optional[str] = None


class UserSummary(CamelModel):
    id: str
    email: str
    name: str
