from __future__ import annotations
import asyncio, logging, time
from collections import deque
from typing import Any, Callable, Deque, List, Optional, Tuple, Union
import numpy as np

from ..io.camera import CaptureOptions, CaptureSource, OpenCVCapture
from ..runtime.events import AttentionSample, Region, Status
from .config import SimulatorConfig
from .gaze import GazeSynthesizer
from .metrics import clamp01, focus_stability, gaze_on_target, next_score

logger = logging.getLogger(__name__)

Observer = Callable[[AttentionSample], Any]
Target = Union[Region, Callable[[], Optional[Region]], None]

class Subscription:
    def __init__(self, registry: List["Subscription"], observer: Observer):
        self._registry = registry
        self.observer = observer
        registry.append(self)

    @property
    def active(self) -> bool:
        return self in self._registry

    def unsubscribe(self) -> None:
        if self in self._registry:
            self._registry.remove(self)

class CancelToken:
    """Per-run flag checked by the tick loop; a fresh one is issued on every start."""
    def __init__(self): self.cancelled = False
    def cancel(self): self.cancelled = True

class AttentionSimulator:
    """
    Random-walk attention signal: a periodic tick synthesizes a gaze point, moves the
    score up when the gaze lands on the target and down otherwise, and derives focus
    stability from the variance of the last N scores.

    States: inactive -> start() -> tracking -> stop() -> inactive. start() while
    tracking and stop() while inactive are no-ops. start()/stop() belong to the
    event-loop thread.
    """
    def __init__(self, config: Optional[SimulatorConfig]=None, *, capture: Optional[CaptureSource]=None,
                 rng: Optional[np.random.Generator]=None, seed: Optional[int]=None,
                 clock: Callable[[], float]=time.time):
        self.config = config or SimulatorConfig()
        self.capture = capture if capture is not None else OpenCVCapture()
        self.rng = rng if rng is not None else np.random.default_rng(seed)
        self.clock = clock
        self._cfg = self.config
        self._gaze = GazeSynthesizer(self._cfg, self.rng)
        self._history: Deque[float] = deque(maxlen=self._cfg.history_size)
        self._sample = AttentionSample(timestamp=clock())
        self._observers: List[Subscription] = []
        self._disengage_observers: List[Subscription] = []
        self._target: Target = None
        self._handle: Any = None
        self._task: Optional[asyncio.Task] = None
        self._token: Optional[CancelToken] = None
        self._tracking = False
        self._engaged = False

    @property
    def status(self) -> Status:
        return self._sample.status

    @property
    def is_tracking(self) -> bool:
        return self._tracking

    @property
    def active_config(self) -> SimulatorConfig:
        return self._cfg

    @property
    def history(self) -> Tuple[float, ...]:
        return tuple(self._history)

    def current_sample(self) -> AttentionSample:
        return self._sample

    def subscribe(self, observer: Observer) -> Subscription:
        """
        Call `observer(sample)` after every tick, in registration order.
        Observers run inside the tick: anything slow must be handed off
        (e.g. asyncio.create_task) or it will delay the next tick.
        """
        return Subscription(self._observers, observer)

    def on_disengage(self, observer: Observer) -> Subscription:
        """Call `observer(sample)` each time the score drops below disengage_threshold."""
        return Subscription(self._disengage_observers, observer)

    async def start(self, target: Target=None, config: Optional[SimulatorConfig]=None, *,
                    initial_score: Optional[float]=None) -> None:
        """
        Begin ticking. Raises CaptureError (status stays inactive) if the configured
        camera cannot be opened. The previous score carries over unless
        `initial_score` is given; the history window always starts empty.
        """
        if self._tracking:
            logger.debug("start() ignored: already tracking")
            return
        loop = asyncio.get_running_loop()
        cfg = config or self.config
        handle = None
        if cfg.camera is not None:
            handle = self.capture.acquire(CaptureOptions(camera=cfg.camera, width=cfg.camera_width, height=cfg.camera_height))

        self._cfg = cfg
        self._handle = handle
        self._target = target
        self._gaze = GazeSynthesizer(cfg, self.rng)
        self._history = deque(maxlen=cfg.history_size)
        score = self._sample.score if initial_score is None else clamp01(initial_score)
        self._engaged = score >= cfg.disengage_threshold
        self._sample = self._sample.model_copy(update={"score": score, "status": "tracking"})
        self._tracking = True
        self._token = CancelToken()
        self._task = loop.create_task(self._run(self._token, cfg.interval_s))
        logger.info("attention tracking started (interval=%.3fs, history=%d)", cfg.interval_s, cfg.history_size)

    def stop(self) -> None:
        """
        Cancel the loop, release the capture handle and go inactive.
        Safe from inside an observer: the running tick completes, no further tick runs.
        """
        if not self._tracking:
            return
        self._tracking = False
        if self._token is not None:
            self._token.cancel()
        task = self._task
        if task is not None and not task.done():
            task.cancel()
        handle, self._handle = self._handle, None
        self._target = None
        self._sample = self._sample.model_copy(update={"status": "inactive"})
        if handle is not None:
            try:
                self.capture.release(handle)
            except Exception:
                logger.exception("capture release failed")
        logger.info("attention tracking stopped")

    async def aclose(self) -> None:
        task = self._task
        self.stop()
        if task is not None and task is not asyncio.current_task():
            await asyncio.gather(task, return_exceptions=True)
        if self._task is task:
            self._task = None

    async def __aenter__(self) -> "AttentionSimulator":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def _run(self, token: CancelToken, interval: float) -> None:
        while not token.cancelled:
            await asyncio.sleep(interval)
            if token.cancelled: break
            self.tick()

    def _resolve_target(self) -> Optional[Region]:
        t = self._target
        return t() if callable(t) else t

    def tick(self) -> AttentionSample:
        """One update step. Returns the new sample, or the current one when inactive."""
        if not self._tracking:
            return self._sample
        cfg = self._cfg
        target = self._resolve_target()
        gaze = self._gaze(target)
        attentive = gaze_on_target(gaze, target)
        score = next_score(self._sample.score, attentive, self.rng,
                           gain=cfg.attentive_gain, jitter=cfg.attentive_jitter,
                           decay=cfg.decay, decay_jitter=cfg.decay_jitter)
        self._history.append(score)
        stability = focus_stability(self._history, cfg.stability_gain)
        load = clamp01(cfg.cognitive_load_base + self.rng.uniform(0.0, cfg.cognitive_load_span))
        ts = max(self.clock(), self._sample.timestamp + 1e-6)

        sample = AttentionSample(score=score, focus_stability=stability, cognitive_load=load,
                                 gaze_point=gaze, timestamp=ts, status="tracking")
        self._sample = sample
        logger.debug("tick score=%.3f stability=%.3f attentive=%s", score, stability, attentive)
        self._notify(self._observers, sample)

        if score >= cfg.disengage_threshold:
            self._engaged = True
        elif self._engaged:
            self._engaged = False
            logger.info("disengagement: score %.3f < %.3f", score, cfg.disengage_threshold)
            self._notify(self._disengage_observers, sample)
        return sample

    def _notify(self, subs: List[Subscription], sample: AttentionSample) -> None:
        for sub in list(subs):
            try:
                sub.observer(sample)
            except Exception:
                logger.exception("attention observer %r failed", sub.observer)
