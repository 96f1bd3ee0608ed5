"""Assertion configuration: an explicit value, resolved at the entry boundary.

``AssertConfig`` carries everything a comparison needs besides its inputs.
Pass one to ``assert_image`` / ``assert_h264_frame`` to make a call
independent of the process environment; omit it and the facade calls
``AssertConfig.from_env()`` at call time.

Environment:
    TWENTY_TWENTY                 execution mode (see twenty_twenty.mode)
    TWENTY_TWENTY_ARTIFACTS_DIR   artifacts root, default ``artifacts``
    TWENTY_TWENTY_CONFIG          optional YAML file with comparison settings

Config file format::

    metric: hybrid        # or "ssim" for luma-only SSIM
    window_size: 11
    sigma: 1.5
    k1: 0.01
    k2: 0.03
    store_diff: true
    write_report: true
    artifacts_dir: artifacts

The mode is never read from the file; it always comes from the environment
or the caller.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Literal, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from twenty_twenty.errors import ENV_VAR, ConfigError
from twenty_twenty.mode import Mode, resolve_mode
from twenty_twenty.utils import fs

ARTIFACTS_DIR_VAR = f"{ENV_VAR}_ARTIFACTS_DIR"
CONFIG_FILE_VAR = f"{ENV_VAR}_CONFIG"


class AssertConfig(BaseModel):
    """Settings for one assertion call."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    mode: Mode = Field(Mode.ASSERT, description="Reference lifecycle mode")
    artifacts_dir: Path = Field(Path("artifacts"), description="Root for stored artifacts")
    metric: Literal["hybrid", "ssim"] = Field(
        "hybrid", description="hybrid = luma SSIM x chroma agreement; ssim = luma only"
    )
    window_size: int = Field(11, ge=3, le=63, description="Gaussian window side (odd)")
    sigma: float = Field(1.5, gt=0.0, description="Gaussian standard deviation")
    k1: float = Field(0.01, gt=0.0, lt=1.0, description="Luminance stability constant")
    k2: float = Field(0.03, gt=0.0, lt=1.0, description="Contrast stability constant")
    store_diff: bool = Field(True, description="Write <stem>.diff.png with artifacts")
    write_report: bool = Field(True, description="Write <stem>.report.yaml with artifacts")

    @field_validator('window_size')
    @classmethod
    def validate_window_size(cls, v: int) -> int:
        if v % 2 == 0:
            raise ValueError(f"window_size must be odd, got {v}")
        return v

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> AssertConfig:
        """Build a config from environment variables (default: the process env)."""
        env = os.environ if environ is None else environ

        data: Dict[str, Any] = {}
        config_file = env.get(CONFIG_FILE_VAR)
        if config_file:
            data.update(_read_file(config_file))

        data["mode"] = resolve_mode(env.get(ENV_VAR))
        artifacts_dir = env.get(ARTIFACTS_DIR_VAR)
        if artifacts_dir:
            data["artifacts_dir"] = artifacts_dir

        return _build(data, source=config_file or "environment")


def _read_file(path: Union[str, Path]) -> Dict[str, Any]:
    try:
        data = fs.load_yaml(path)
    except FileNotFoundError as e:
        raise ConfigError(f"config file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ConfigError(str(e)) from e
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping, got {type(data).__name__}")
    if "mode" in data:
        raise ConfigError(
            f"config file {path} must not set 'mode'; use {ENV_VAR} or pass AssertConfig(mode=...)"
        )
    return data


def _build(data: Dict[str, Any], source: str) -> AssertConfig:
    try:
        return AssertConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"invalid configuration from {source}:\n{e}") from e


def load_config(path: Union[str, Path], mode: Mode = Mode.ASSERT) -> AssertConfig:
    """Load comparison settings from a YAML file.

    Raises
    ------
    ConfigError
        If the file is missing, unparsable, sets ``mode`` or fails validation.
    """
    data = _read_file(path)
    data["mode"] = mode
    return _build(data, source=str(path))
