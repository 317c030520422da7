"""ACP bridge: drives an interactive coding CLI behind the Agent Client Protocol."""

__version__ = "0.1.0"

from acp_bridge.errors import BridgeError, RequestError
from acp_bridge.session import BridgeAgent
from acp_bridge.transport import AgentSideConnection, Connection

__all__ = [
    "AgentSideConnection",
    "BridgeAgent",
    "BridgeError",
    "Connection",
    "RequestError",
    "__version__",
]
