"""HTTP client for communicating with the agent."""

from pathlib import Path
from typing import Dict, Any, Optional
import httpx


class IPCError(Exception):
    """Communication error."""
    pass


class IPCClient:
    """Client for communicating with agent via Unix socket or TCP."""

    def __init__(self, socket_path: Optional[str] = None, host: Optional[str] = None):
        """Initialize IPC client."""
        self.socket_path = Path(socket_path) if socket_path else None
        self.host = host

        if not self.socket_path and not self.host:
            self.socket_path = Path("./state/keel-agent.sock")

        if self.host:
            self.base_url = f"http://{self.host}"
            self.transport = None  # Default TCP transport
        else:
            self.base_url = "http://localhost"
            self.transport = httpx.HTTPTransport(uds=str(self.socket_path))

    def request(self, command: str, args: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Send REST request to agent."""
        if self.socket_path and not self.socket_path.exists() and not self.host:
            raise IPCError(f"Agent socket not found at {self.socket_path}")

        payload = {
            "command": command,
            "args": args or {}
        }

        try:
            with httpx.Client(transport=self.transport, base_url=self.base_url, timeout=300.0) as client:
                response = client.post("/api/v1/command", json=payload)
                try:
                    data = response.json()
                except ValueError:
                    response.raise_for_status()
                    raise IPCError(f"Invalid response from agent: {response.text}")

                if not data.get("success"):
                    raise IPCError(f"Agent error: {data.get('error')}")

                return data.get("data", {})

        except httpx.RequestError as e:
            raise IPCError(f"Connection error: {e}")
        except httpx.HTTPStatusError as e:
            raise IPCError(f"HTTP error {e.response.status_code}: {e.response.text}")
