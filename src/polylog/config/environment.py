"""
Environment overrides.

These are read once, when a ``Loggers`` instance is constructed.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConsoleSettings(BaseSettings):
    """Console switches. Prefix: CONSOLE_"""

    model_config = SettingsConfigDict(
        env_prefix="CONSOLE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    colors: Optional[bool] = Field(default=None, description="Override console.colors")
    data: Optional[bool] = Field(default=None, description="Override console.data")

    def overrides(self) -> dict[str, bool]:
        return {key: value for key, value in (("colors", self.colors), ("data", self.data)) if value is not None}


class GCloudSettings(BaseSettings):
    """Fallback project for the remote sink."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    google_cloud_project: Optional[str] = Field(default=None, description="GOOGLE_CLOUD_PROJECT")


class PolylogSettings(BaseSettings):
    """
    Options sourced from the environment.
    Prefix: POLYLOG_
    """

    model_config = SettingsConfigDict(
        env_prefix="POLYLOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    stage: Optional[str] = None
    service: Optional[str] = None
    version: Optional[str] = None
    default_category: str = Field(default="general", description="Category used when none is given")
    default_level: str = Field(default="debug", description="Level used when tags name none")
    console_level: str = Field(default="info", description="Console level of the default category")
    file_level: str = Field(default="off", description="File level of the default category")
    error_file_level: str = Field(default="off", description="Error file level of the default category")
    remote_level: str = Field(default="off", description="Remote level of the default category")
    log_directory: Optional[str] = Field(default=None, description="Directory for log files")
    remote_project: Optional[str] = None
    remote_log_name: Optional[str] = None

    def to_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {
            "stage": self.stage,
            "service": self.service,
            "version": self.version,
            "default_category": self.default_category,
            "default_level": self.default_level,
            "categories": {
                "default": {
                    "console": self.console_level,
                    "file": self.file_level,
                    "error_file": self.error_file_level,
                    "remote": self.remote_level,
                }
            },
            "remote": {"project": self.remote_project, "log_name": self.remote_log_name},
        }
        if self.log_directory:
            options["file"] = {"directories": [self.log_directory]}
        return options
