from __future__ import annotations
import numpy as np
from typing import Iterable, Optional
from ..runtime.events import GazePoint, Region

def clamp01(v: float) -> float:
    return float(min(1.0, max(0.0, v)))

def focus_stability(history: Iterable[float], gain: float=5.0) -> float:
    """
    1 - gain * population variance, clamped to [0,1].
    Fewer than two scores carry no spread information: stability is 1.
    """
    xs = np.fromiter(history, dtype=float)
    if xs.size < 2: return 1.0
    return clamp01(1.0 - gain * float(np.var(xs)))

def gaze_on_target(p: GazePoint, target: Optional[Region]) -> bool:
    if target is None: return False
    return target.contains(p)

def next_score(prev: float, attentive: bool, rng: np.random.Generator,
               gain: float=0.05, jitter: float=0.02, decay: float=0.08, decay_jitter: float=0.03) -> float:
    # decay is steeper than recovery
    if attentive:
        return clamp01(prev + gain + rng.uniform(0.0, jitter))
    return clamp01(prev - decay - rng.uniform(0.0, decay_jitter))
