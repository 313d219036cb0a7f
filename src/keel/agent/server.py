"""HTTP/REST server for agent communication."""

import logging
import os
from pathlib import Path
from typing import Dict, Any, Optional

from aiohttp import web

from keel.agent.engine import ConvergenceEngine
from keel.agent.config import ConfigManager
from keel.models.applyspec import ApplySpec


logger = logging.getLogger(__name__)


class AgentServer:
    """Agent HTTP server."""

    def __init__(self, socket_path: Path, host: Optional[str], port: int, engine: ConvergenceEngine, config_manager: ConfigManager):
        """Initialize server."""
        self.socket_path = Path(socket_path)
        self.host = host
        self.port = port
        self.engine = engine
        self.config_manager = config_manager
        self.app = web.Application()
        self.runner: Optional[web.AppRunner] = None
        self._setup_routes()

    def _setup_routes(self):
        """Setup API routes."""
        self.app.router.add_post('/api/v1/command', self._handle_command)

    async def start(self):
        """Start the server."""
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()

        # Bind to Unix socket
        if self.socket_path.exists():
            self.socket_path.unlink()
        self.socket_path.parent.mkdir(parents=True, exist_ok=True)

        site_unix = web.UnixSite(self.runner, str(self.socket_path))
        await site_unix.start()
        os.chmod(self.socket_path, 0o660)
        logger.info(f"Agent listening on unix:{self.socket_path}")

        # Bind to TCP if configured
        if self.host:
            site_tcp = web.TCPSite(self.runner, self.host, self.port)
            await site_tcp.start()
            logger.info(f"Agent listening on tcp://{self.host}:{self.port}")

    async def stop(self):
        """Stop the server."""
        if self.runner:
            await self.runner.cleanup()
        if self.socket_path.exists():
            self.socket_path.unlink()
        logger.info("Agent server stopped")

    async def _handle_command(self, request: web.Request) -> web.Response:
        """Handle a REST command."""
        try:
            data = await request.json()
            command = data.get("command")
            args = data.get("args") or {}

            response_data = await self._process_command(command, args)
            return web.json_response({"success": True, "data": response_data})

        except Exception as e:
            logger.error(f"Command error: {e}", exc_info=True)
            return web.json_response({"success": False, "error": str(e)}, status=500)

    async def _process_command(self, command: str, args: Dict[str, Any]) -> Any:
        """Dispatch a command to its handler."""
        handlers = {
            "status": self._handle_status,
            "jobs": self._handle_jobs,
            "apply": self._handle_apply,
            "reconcile": self._handle_reconcile,
            "reload": self._handle_reload,
            "validate": self._handle_validate,
        }

        handler = handlers.get(command)
        if not handler:
            raise ValueError(f"Unknown command: {command}")

        return await handler(args)

    async def _handle_status(self, args: Dict[str, Any]) -> Dict[str, Any]:
        status = await self.engine.get_status()
        return {
            "agent": {
                "running": True,
                "last_reconciliation": status.pop("last_reconciliation"),
                "address_broadcast": status.pop("address_broadcast"),
            },
            "spec": status,
        }

    async def _handle_jobs(self, args: Dict[str, Any]) -> Dict[str, Any]:
        return {"jobs": await self.engine.list_jobs()}

    async def _handle_apply(self, args: Dict[str, Any]) -> Dict[str, Any]:
        document = args.get("spec")
        if document is None:
            raise ValueError("Apply spec required")

        spec = ApplySpec.model_validate(document)
        applied = await self.engine.apply(spec, force=bool(args.get("force", False)))
        return {"deployment": spec.deployment, "applied": applied}

    async def _handle_reconcile(self, args: Dict[str, Any]) -> Dict[str, Any]:
        await self.engine.reconcile()
        return {"reconciled": True}

    async def _handle_reload(self, args: Dict[str, Any]) -> Dict[str, Any]:
        await self.config_manager.load()
        return {"reloaded": True}

    async def _handle_validate(self, args: Dict[str, Any]) -> Dict[str, Any]:
        await self.config_manager.load()
        desired = self.config_manager.desired_spec
        if desired is not None:
            # Resolution errors surface here without touching the node
            self.engine.spec_service.populate_dhcp_networks(desired, self.config_manager.settings)
        return {"valid": True, "message": "Configuration validated"}
