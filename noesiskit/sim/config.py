from __future__ import annotations
import yaml
from pathlib import Path
from typing import Optional, Union
from pydantic import BaseModel, ConfigDict, Field

class Viewport(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")
    width: float = Field(default=1280, gt=0)
    height: float = Field(default=720, gt=0)

class SimulatorConfig(BaseModel):
    """
    Immutable tuning for AttentionSimulator.
    Score/stability constants are exposed here rather than hard-coded.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    interval_s: float = Field(default=0.5, gt=0)
    history_size: int = Field(default=20, ge=1)
    target_hit_probability: float = Field(default=0.7, ge=0, le=1)
    viewport: Viewport = Viewport()
    gaze_offset: float = Field(default=50.0, ge=0)

    attentive_gain: float = 0.05
    attentive_jitter: float = Field(default=0.02, ge=0)
    decay: float = 0.08
    decay_jitter: float = Field(default=0.03, ge=0)
    stability_gain: float = Field(default=5.0, ge=0)
    cognitive_load_base: float = 0.3
    cognitive_load_span: float = Field(default=0.4, ge=0)
    disengage_threshold: float = Field(default=0.3, ge=0, le=1)

    camera: Optional[Union[int,str]] = None
    camera_width: int = 640
    camera_height: int = 480

def load_config(path: str|Path, **overrides) -> SimulatorConfig:
    """Read a YAML mapping; keyword overrides that are not None win over the file."""
    with open(path,"r") as f: cfg = yaml.safe_load(f) or {}
    if not isinstance(cfg, dict):
        raise ValueError(f"{path}: expected a mapping of SimulatorConfig fields, got {type(cfg).__name__}")
    cfg.update({k:v for k,v in overrides.items() if v is not None})
    return SimulatorConfig(**cfg)
