"""Protocol module for rediscache."""

from .codec import RespCodec
from .reply import Reply, ReplyType

__all__ = [
    "Reply",
    "ReplyType",
    "RespCodec",
]
