# marketingvoice/schemas/__init__.py
from .auth import (
    AuthUser,
    Credentials,
    Token,
    UserType
)

from .chat import (
    Attachment,
    Chat,
    ChatWithMessages,
    ContentPart,
    Message,
    PostRequestBody,
    RequestHints,
    VisibilityUpdate
)

from .document import (
    Document,
    Suggestion
)

from .marketing import (
    GeneratedImage,
    ImageRequest,
    ImageResponse,
    MarketingGenerateRequest,
    MarketingGenerateResponse,
    MarketingPromptRequest,
    MarketingPromptResponse,
    TranscriptionResponse
)

from .model import (
    ModelSpec,
    Provider
)

__all__ = [
    'AuthUser',
    'Credentials',
    'Token',
    'UserType',
    'Attachment',
    'Chat',
    'ChatWithMessages',
    'ContentPart',
    'Message',
    'PostRequestBody',
    'RequestHints',
    'VisibilityUpdate',
    'Document',
    'Suggestion',
    'GeneratedImage',
    'ImageRequest',
    'ImageResponse',
    'MarketingGenerateRequest',
    'MarketingGenerateResponse',
    'MarketingPromptRequest',
    'MarketingPromptResponse',
    'TranscriptionResponse',
    'ModelSpec',
    'Provider'
]
