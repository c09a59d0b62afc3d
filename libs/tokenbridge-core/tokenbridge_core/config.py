"""Settings and cutover flags.

Settings live in ``$TOKENBRIDGE_HOME/settings.yaml`` (default home:
``~/.tokenbridge``). A missing file means defaults.

Example settings.yaml:

    store-dir: /var/lib/tokenbridge/store
    batch-size: 10
    batch-delay: 0.1
    max-retries: 2
    retry-base-delay: 1.0
    flags:
      enable-dual-run: true
      use-new-model: false
      discrepancy-threshold: 0.05
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from tokenbridge_core.yamlio import load_document, write_yaml


def tokenbridge_home() -> Path:
    """Return per-user tokenbridge home (override with TOKENBRIDGE_HOME)."""
    env = os.environ.get("TOKENBRIDGE_HOME")
    if env:
        return Path(env).expanduser().resolve()
    return Path.home() / ".tokenbridge"


def settings_path() -> Path:
    return tokenbridge_home() / "settings.yaml"


class CutoverFlags(BaseModel):
    """Gates for moving from the legacy pipeline to the new one."""

    model_config = ConfigDict(populate_by_name=True)

    enable_dual_run: bool = Field(default=True, alias="enable-dual-run")
    # Off by default: the legacy output stays authoritative until an operator opts in
    use_new_model: bool = Field(default=False, alias="use-new-model")
    discrepancy_threshold: float = Field(default=0.05, ge=0.0, le=1.0, alias="discrepancy-threshold")


class Settings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    store_dir: Path | None = Field(default=None, alias="store-dir")
    batch_size: int = Field(default=10, ge=1, alias="batch-size")
    batch_delay: float = Field(default=0.1, ge=0.0, alias="batch-delay")
    max_retries: int = Field(default=2, ge=0, alias="max-retries")
    retry_base_delay: float = Field(default=1.0, ge=0.0, alias="retry-base-delay")
    flags: CutoverFlags = Field(default_factory=CutoverFlags)

    def resolved_store_dir(self) -> Path:
        if self.store_dir is not None:
            return Path(self.store_dir).expanduser()
        return tokenbridge_home() / "store"


def load_settings(path: Path | None = None) -> Settings:
    path = path or settings_path()
    if not path.exists():
        return Settings()
    return Settings.model_validate(load_document(path))


def save_settings(settings: Settings, path: Path | None = None) -> None:
    path = path or settings_path()
    data = settings.model_dump(mode="json", by_alias=True, exclude_none=True)
    write_yaml(path, data)
