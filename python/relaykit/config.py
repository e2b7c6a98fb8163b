"""
Configuration for RelayKit.

Settings are read from environment variables, optionally seeded from a
``.env`` file in the working directory.

Environment variables:
  HOST              - Bind address for both servers (default: 0.0.0.0)
  PORT              - Signaling WebSocket port (default: 3001)
  HTTP_PORT         - HTTP API port (default: 3002)
  ALLOWED_ORIGIN    - CORS origin (default: *)
  UPLOAD_DIR        - Root directory for uploaded chunks (default: ./uploads)
  MAX_CHUNK_MB      - Maximum chunk size in MiB (default: 50)
  WS_PATH           - WebSocket endpoint path (default: /ws)
  MAX_MESSAGE_BYTES - Maximum inbound frame size (default: 1 MiB)
  LOG_LEVEL         - Logging level (default: INFO)
"""

from __future__ import annotations

import os
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

MAX_MESSAGE_BYTES = 1024 * 1024  # 1MB max frame size


class Settings(BaseModel):
    """Runtime settings for the relay and its HTTP API."""

    host: str = "0.0.0.0"
    port: int = Field(3001, ge=0, le=65535)
    http_port: int = Field(3002, ge=0, le=65535)
    allowed_origin: str = "*"
    upload_dir: str = "./uploads"
    max_chunk_mb: float = Field(50, gt=0)
    ws_path: str = "/ws"
    max_message_bytes: int = Field(MAX_MESSAGE_BYTES, gt=0)
    log_level: str = "INFO"

    @property
    def max_chunk_bytes(self) -> int:
        """Maximum upload chunk size in bytes."""
        return int(self.max_chunk_mb * 1024 * 1024)

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        dotenv: bool = True,
    ) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ).
            dotenv: Whether to load a ``.env`` file into os.environ first.
        """
        if dotenv:
            load_dotenv()
        env = os.environ if environ is None else environ

        names = {
            "host": "HOST",
            "port": "PORT",
            "http_port": "HTTP_PORT",
            "allowed_origin": "ALLOWED_ORIGIN",
            "upload_dir": "UPLOAD_DIR",
            "max_chunk_mb": "MAX_CHUNK_MB",
            "ws_path": "WS_PATH",
            "max_message_bytes": "MAX_MESSAGE_BYTES",
            "log_level": "LOG_LEVEL",
        }
        values = {field: env[var] for field, var in names.items() if env.get(var)}
        return cls.model_validate(values)


__all__ = ["Settings", "MAX_MESSAGE_BYTES"]
