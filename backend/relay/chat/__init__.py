"""Chat relay core: connections, rooms, message buffer and fan-out."""

from .buffer import BufferedMessage, MessageBuffer
from .manager import RelayManager, SendAck
from .registry import ConnectionRegistry
from .rooms import RoomMembership
from .transport import SocketIOTransport, Transport

__all__ = [
    "BufferedMessage",
    "MessageBuffer",
    "RelayManager",
    "SendAck",
    "ConnectionRegistry",
    "RoomMembership",
    "SocketIOTransport",
    "Transport",
]
