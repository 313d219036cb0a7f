"""Configuration management for the agent."""

import asyncio
import hashlib
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from ruamel.yaml import YAML
from pydantic import ValidationError

from keel.models.applyspec import ApplySpec
from keel.models.config import KeelConfig
from keel.models.settings import Settings


logger = logging.getLogger(__name__)


CONFIG_FILE_NAME = "config.yaml"
DESIRED_SPEC_FILE_NAME = "spec.yaml"


class ConfigManager:
    """Loads the agent config, platform settings and the desired apply spec."""

    def __init__(self, config_dir: Path):
        """Initialize configuration manager."""
        self.config_dir = Path(config_dir)
        self.yaml = YAML(typ="safe")
        self.config: Optional[KeelConfig] = None
        self.settings: Settings = Settings()
        self.desired_spec: Optional[ApplySpec] = None
        self._config_hashes: Dict[str, str] = {}

    async def load(self):
        """Load all configuration files."""
        logger.info(f"Loading configuration from {self.config_dir}")

        await self._load_main_config()
        await self._load_settings()
        await self._load_desired_spec()

        logger.info("Configuration loaded successfully")

    async def _load_main_config(self):
        """Load main configuration file."""
        config_file = self.config_dir / CONFIG_FILE_NAME
        if not config_file.exists():
            raise FileNotFoundError(f"Main config not found: {config_file}")

        try:
            data = await self._read_yaml(config_file)
            self.config = KeelConfig(**(data or {}))
            logger.debug(f"Loaded main config: {config_file}")
        except ValidationError as e:
            logger.error(f"Invalid main config: {e}")
            raise

    async def _load_settings(self):
        """Load platform settings (JSON or YAML)."""
        settings_file = Path(self.config.paths.settings_path)
        if not settings_file.exists():
            logger.warning(f"Settings file not found: {settings_file}")
            self.settings = Settings()
            return

        try:
            data = await self._read_yaml(settings_file)
            self.settings = Settings.model_validate(data or {})
            logger.debug(f"Loaded settings: {settings_file}")
        except ValidationError as e:
            logger.error(f"Invalid settings: {e}")
            raise

    async def _load_desired_spec(self):
        """Load the desired apply spec dropped by the orchestrator."""
        spec_file = self.config_dir / DESIRED_SPEC_FILE_NAME
        if not spec_file.exists():
            logger.debug(f"No desired spec at {spec_file}")
            self.desired_spec = None
            return

        try:
            data = await self._read_yaml(spec_file)
            self.desired_spec = ApplySpec.model_validate(data or {})
            logger.debug(f"Loaded desired spec: {spec_file}")
        except ValidationError as e:
            logger.error(f"Invalid desired spec: {e}")
            raise

    async def _read_yaml(self, file_path: Path) -> Dict[str, Any]:
        """Read and parse a YAML file in a worker thread."""
        return await asyncio.to_thread(self._parse_yaml, file_path)

    def _parse_yaml(self, file_path: Path) -> Dict[str, Any]:
        content = file_path.read_text()
        # Store hash for change detection
        self._config_hashes[str(file_path)] = hashlib.md5(content.encode()).hexdigest()
        return self.yaml.load(content)

    async def watch_for_changes(self) -> bool:
        """Check if any loaded file changed since it was read."""
        for path, known_hash in list(self._config_hashes.items()):
            file_path = Path(path)
            if not file_path.exists():
                return True
            content = await asyncio.to_thread(file_path.read_text)
            if hashlib.md5(content.encode()).hexdigest() != known_hash:
                return True

        # New YAML files in the config dir count as changes too
        for yaml_file in self.config_dir.glob("*.yaml"):
            if str(yaml_file) not in self._config_hashes:
                return True

        return False

    def watched_paths(self) -> list[Path]:
        """Paths the agent should watch for changes."""
        paths = [self.config_dir]
        if self.config:
            settings_dir = Path(self.config.paths.settings_path).parent
            if settings_dir.exists() and settings_dir != self.config_dir:
                paths.append(settings_dir)
        return paths
