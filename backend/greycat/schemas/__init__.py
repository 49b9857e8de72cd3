from .channel import AddMemberRequest, AddModeratorRequest, CreateChannelRequest
from .message import EditMessageRequest, ReplyRequest, SendMessageRequest, ToggleReactionRequest

__all__ = [
    "AddMemberRequest",
    "AddModeratorRequest",
    "CreateChannelRequest",
    "EditMessageRequest",
    "ReplyRequest",
    "SendMessageRequest",
    "ToggleReactionRequest",
]
