from .channel import EngineChannel, ReplyHandler
from .messages import (
    COMPLETE_REQUEST,
    INTELLISENSE_REQUEST,
    CompletionReply,
    EnvelopedReplyAdapter,
    FlatReplyAdapter,
    ReplyFormatError,
    RequestEnvelope,
    normalize_reply,
)

__all__ = [
    "COMPLETE_REQUEST",
    "CompletionReply",
    "EngineChannel",
    "EnvelopedReplyAdapter",
    "FlatReplyAdapter",
    "INTELLISENSE_REQUEST",
    "ReplyFormatError",
    "ReplyHandler",
    "RequestEnvelope",
    "normalize_reply",
]
