from .server import MCPServer
from .util import MCPUtil

__all__ = [
    "MCPServer",
    "MCPUtil",
]
