"""Room lobby package: wraps the betting core with a registry and networking."""

from .registry import Room, RoomRegistry
from .results import Failure, Result, Success
from .server import LobbyServer

__all__ = ["Failure", "LobbyServer", "Result", "Room", "RoomRegistry", "Success"]
