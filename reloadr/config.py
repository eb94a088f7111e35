from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .constants import (
    DEFAULT_BUILD_COMMAND,
    DEFAULT_DEBOUNCE_MS,
    DEFAULT_WATCH_EXTS,
    DEFAULT_WATCH_PATH,
)
from .utils import app_name_from_dir


class ReloadrConfig(BaseModel):
    app_name: str = Field(default_factory=app_name_from_dir)
    watch_path: str = DEFAULT_WATCH_PATH
    watch_exts: List[str] = Field(default_factory=lambda: list(DEFAULT_WATCH_EXTS))
    debounce_ms: int = Field(default=DEFAULT_DEBOUNCE_MS, ge=0)
    build_command: List[str] = Field(default_factory=lambda: list(DEFAULT_BUILD_COMMAND))
    build_dir: Optional[str] = None
    run_command: Optional[List[str]] = None

    @field_validator("app_name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("app_name must not be blank")
        return v

    @field_validator("watch_exts")
    @classmethod
    def _exts_not_empty(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("at least one extension must be watched")
        if any(not ext for ext in v):
            raise ValueError("extensions must not be empty strings")
        return v

    @field_validator("build_command", "run_command")
    @classmethod
    def _command_not_empty(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is not None and not v:
            raise ValueError("command must not be empty")
        return v

    @property
    def debounce(self) -> float:
        return self.debounce_ms / 1000.0

    def resolved_build_dir(self) -> str:
        return self.build_dir or os.getcwd()

    def resolved_run_command(self) -> List[str]:
        return list(self.run_command) if self.run_command else [self.app_name]

    @classmethod
    def load(cls, path: str, **overrides) -> "ReloadrConfig":
        """Read a JSON config file; keyword overrides that are not None win."""
        raw = Path(path).read_text(encoding="utf-8")
        cfg = cls.model_validate_json(raw)
        updates = {k: v for k, v in overrides.items() if v is not None}
        if not updates:
            return cfg
        return cls.model_validate({**cfg.model_dump(exclude_unset=True), **updates})
