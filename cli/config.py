"""Configuration management for the s3-multipart CLI."""

import json
import os
import shutil
from pathlib import Path
from typing import Any, Dict, Optional

from common.constants import (
    DEFAULT_CHUNK_SIZE_BYTES,
    DEFAULT_MAX_WORKERS,
    DEFAULT_REGION,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
)
from common.logging_config import get_logger
from uploader.config import UploadConfig

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / '.s3multipart' / 'config.json'

ENV_OVERRIDES = {
    "access_key": "AWS_ACCESS_KEY_ID",
    "secret_key": "AWS_SECRET_ACCESS_KEY",
    "session_token": "AWS_SESSION_TOKEN",
    "region": "AWS_REGION",
    "bucket": "BUCKET",
    "key": "KEY",
    "chunk_size_bytes": "CHUNK_SIZE",
    "endpoint_url": "S3_ENDPOINT_URL",
}


class Config:
    """Manages CLI configuration stored in a JSON file, overlaid by environment variables."""

    DEFAULT_CONFIG = {
        "region": DEFAULT_REGION,
        "chunk_size_bytes": DEFAULT_CHUNK_SIZE_BYTES,
        "addressing_style": "virtual",
        "max_workers": DEFAULT_MAX_WORKERS,
        "request_timeout_seconds": DEFAULT_REQUEST_TIMEOUT_SECONDS,
    }

    def __init__(self, config_path: Path = DEFAULT_CONFIG_PATH, environ: Optional[Dict[str, str]] = None):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file (typically ~/.s3multipart/config.json)
            environ: Environment mapping (defaults to os.environ)
        """
        self.config_path = Path(config_path)
        self.environ = os.environ if environ is None else environ
        self.data = self._load()

    def _load(self) -> dict:
        """
        Load configuration from file, creating defaults if necessary.

        Returns:
            Configuration dictionary
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            import tempfile
            self.config_path = Path(tempfile.gettempdir()) / '.s3multipart' / 'config.json'
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
                config = self.DEFAULT_CONFIG.copy()
                config.update(data)
                return config
            except (json.JSONDecodeError, IOError) as e:
                backup_path = self.config_path.with_suffix('.json.bak')
                logger.warning(f"Config file {self.config_path} is unreadable ({e}); backing up to {backup_path}")
                try:
                    shutil.copy(self.config_path, backup_path)
                except OSError as copy_error:
                    logger.warning(f"Could not back up config file: {copy_error}")
                return self.DEFAULT_CONFIG.copy()

        config = self.DEFAULT_CONFIG.copy()
        self._write(config)
        return config

    def _write(self, data: dict) -> None:
        try:
            with open(self.config_path, 'w') as f:
                json.dump(data, f, indent=2)
        except IOError as e:
            logger.warning(f"Could not write config file {self.config_path}: {e}")

    def save(self) -> None:
        """Save current configuration to file."""
        self._write(self.data)

    def resolve(self, **overrides: Any) -> Dict[str, Any]:
        """
        Merge file values, environment variables and explicit overrides (highest wins).

        Args:
            **overrides: Values from the command line; None values are ignored

        Returns:
            Merged configuration dictionary
        """
        merged = dict(self.data)
        for field, env_name in ENV_OVERRIDES.items():
            value = self.environ.get(env_name)
            if value:
                merged[field] = value
        merged.update({k: v for k, v in overrides.items() if v is not None})
        return merged

    def to_upload_config(self, **overrides: Any) -> UploadConfig:
        """
        Build the validated UploadConfig.

        Raises:
            pydantic.ValidationError: If a required value is missing or invalid
        """
        return UploadConfig(**self.resolve(**overrides))
