from __future__ import annotations
import numpy as np
from typing import Optional
from ..runtime.events import GazePoint, Region
from .config import SimulatorConfig

class GazeSynthesizer:
    """
    Stand-in for a gaze estimator: no frames are read.
    Draws a point near the target center with probability p, anywhere on the viewport otherwise.
    """
    def __init__(self, cfg: SimulatorConfig, rng: np.random.Generator):
        self.cfg = cfg
        self.rng = rng

    def viewport_center(self) -> GazePoint:
        vp = self.cfg.viewport
        return GazePoint(x=vp.width/2, y=vp.height/2)

    def __call__(self, target: Optional[Region]) -> GazePoint:
        if target is None:
            return self.viewport_center()
        if self.rng.random() < self.cfg.target_hit_probability:
            c = target.center; off = self.cfg.gaze_offset
            return GazePoint(x=c.x + self.rng.uniform(-off, off), y=c.y + self.rng.uniform(-off, off))
        vp = self.cfg.viewport
        return GazePoint(x=self.rng.uniform(0, vp.width), y=self.rng.uniform(0, vp.height))
