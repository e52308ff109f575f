from __future__ import annotations
import asyncio, logging
from typing import List, Optional, Set

from .orchestration.settings import settings
from .orchestration.recommend import EngagementPrompt, EngagementRequest, NextStepRequest, Recommendation, RecommendationService
from .runtime.events import AttentionSample, LearningEventIn
from .sim.tracker import AttentionSimulator, Target
from .storage.memory import MemStorage

logger = logging.getLogger(__name__)

class LearningSession:
    """
    Owns one AttentionSimulator and wires it to the event sink and, when given,
    the recommendation service. Consumers get the simulator through the session.
    """
    def __init__(self, simulator: AttentionSimulator, storage: Optional[MemStorage]=None,
                 recommender: Optional[RecommendationService]=None, *, context: str="general learning",
                 user_id: Optional[int]=None, record_samples: bool=True):
        self.simulator = simulator
        self.storage = storage if storage is not None else MemStorage()
        self.recommender = recommender
        self.context = context
        self.user_id = user_id if user_id is not None else settings.demo_user_id
        self.interventions: List[EngagementPrompt] = []
        self._pending: Set[asyncio.Task] = set()
        self._subs = []
        if record_samples:
            self._subs.append(simulator.subscribe(self._record))
        if recommender is not None:
            self._subs.append(simulator.on_disengage(self._on_disengage))

    async def start(self, target: Target=None, **kw) -> None:
        await self.simulator.start(target, **kw)

    def stop(self) -> None:
        self.simulator.stop()

    async def aclose(self) -> None:
        await self.simulator.aclose()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        for s in self._subs: s.unsubscribe()

    async def __aenter__(self) -> "LearningSession":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    def _record(self, sample: AttentionSample) -> None:
        self.storage.create_learning_event(LearningEventIn(
            user_id=self.user_id, type="attention",
            data=sample.model_dump(exclude={"timestamp"}),
            timestamp=sample.timestamp,
        ))

    def _on_disengage(self, sample: AttentionSample) -> None:
        # runs inside the tick; the request itself goes on the loop
        task = asyncio.get_running_loop().create_task(self.engage(sample.score))
        self._pending.add(task)
        task.add_done_callback(self._engage_done)

    def _engage_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("engagement request failed", exc_info=task.exception())

    async def engage(self, score: float) -> EngagementPrompt:
        if self.recommender is None:
            raise RuntimeError("no recommendation service configured")
        prompt = await self.recommender.engagement(EngagementRequest(
            attention_score=score, context=self.context,
            previous_interventions=[p.message for p in self.interventions],
        ))
        self.interventions.append(prompt)
        logger.info("intervention (%s): %s", prompt.source, prompt.message)
        return prompt

    async def next_step(self, context: Optional[str]=None) -> Recommendation:
        if self.recommender is None:
            raise RuntimeError("no recommendation service configured")
        s = self.simulator.current_sample()
        return await self.recommender.next_step(NextStepRequest.model_validate({
            "learnerState": {
                "attention": {"score": s.score, "focusStability": s.focus_stability,
                              "cognitiveLoad": s.cognitive_load, "status": s.status},
                "timestamp": s.timestamp,
            },
            "context": context or self.context,
        }))
