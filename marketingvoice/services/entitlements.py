# marketingvoice/services/entitlements.py
from dataclasses import dataclass

from ..schemas.auth import UserType
from ..utils.errors import ForbiddenError, QuotaExceededError

MESSAGE_WINDOW_HOURS = 24


@dataclass(frozen=True)
class Entitlements:
    max_messages_per_day: int
    available_chat_model_ids: tuple[str, ...]


ENTITLEMENTS_BY_USER_TYPE: dict[UserType, Entitlements] = {
    # Users without an account
    UserType.GUEST: Entitlements(
        max_messages_per_day=20,
        available_chat_model_ids=("chat-model", "chat-model-reasoning"),
    ),
    # Users with an account
    UserType.REGULAR: Entitlements(
        max_messages_per_day=100,
        available_chat_model_ids=("chat-model", "chat-model-reasoning"),
    ),
}


def has_remaining_quota(user_type: UserType, message_count: int) -> bool:
    return message_count < ENTITLEMENTS_BY_USER_TYPE[user_type].max_messages_per_day


def ensure_within_quota(user_type: UserType, message_count: int) -> None:
    if not has_remaining_quota(user_type, message_count):
        raise QuotaExceededError(details={
            "messageCount": message_count,
            "maxMessagesPerDay": ENTITLEMENTS_BY_USER_TYPE[user_type].max_messages_per_day
        })


def ensure_model_available(user_type: UserType, model_id: str) -> None:
    if model_id not in ENTITLEMENTS_BY_USER_TYPE[user_type].available_chat_model_ids:
        raise ForbiddenError("This model is not available for your account", details={"model": model_id})
