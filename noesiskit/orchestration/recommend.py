from __future__ import annotations
import json, logging
import httpx
import numpy as np
from typing import Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ..runtime.events import LearningEventIn
from ..storage.memory import MemStorage
from .client import ChatClient, ChatError
from .settings import settings

logger = logging.getLogger(__name__)

class _Camel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class AttentionSnapshot(_Camel):
    score: Optional[float] = Field(default=None, ge=0, le=1)
    focus_stability: Optional[float] = Field(default=None, ge=0, le=1)
    cognitive_load: Optional[float] = Field(default=None, ge=0, le=1)
    status: Optional[str] = None

class MasteryItem(_Camel):
    id: str
    name: str
    progress: float = Field(ge=0, le=1)
    status: str

class LearnerState(_Camel):
    attention: Optional[AttentionSnapshot] = None
    mastery: Optional[List[MasteryItem]] = None
    timestamp: float

class NextStepOptions(_Camel):
    detail: Optional[Literal["low","medium","high"]] = None
    format: Optional[Literal["text","json"]] = None

class NextStepRequest(_Camel):
    learner_state: LearnerState
    context: Optional[str] = None
    options: Optional[NextStepOptions] = None

class EngagementRequest(_Camel):
    attention_score: Optional[float] = Field(default=None, ge=0, le=1)
    context: Optional[str] = None
    previous_interventions: Optional[List[str]] = None

class Recommendation(_Camel):
    suggestion: str
    explanation: str = ""
    resource_links: List[str] = []
    type: Literal["llm-generated","fallback"] = "llm-generated"

class EngagementPrompt(_Camel):
    message: str
    type: str
    source: Literal["llm-generated","fallback"] = "llm-generated"

NEXT_STEP_SYSTEM = (
    "You are an adaptive learning assistant that provides personalized learning recommendations "
    "based on attention data and mastery progress. Respond with JSON in this format: "
    "{ 'suggestion': string, 'explanation': string, 'resourceLinks': string[] }"
)
ENGAGEMENT_SYSTEM = (
    "You are an adaptive learning assistant focused on maintaining learner engagement. "
    "Respond with JSON in this format: { 'message': string, 'type': string }"
)
ENGAGEMENT_TYPES = ("attention-prompt","interactive-element","modality-change","micro-break","social-engagement")

FALLBACK_RECOMMENDATION = Recommendation(
    suggestion="Based on your progress, I recommend continuing with the current concept.",
    explanation="This recommendation is based on your current attention and mastery levels.",
    resource_links=[],
    type="fallback",
)
FALLBACK_ENGAGEMENT = (
    "Would you like to take a quick 30-second break to refresh?",
    "Let's try a different approach to this concept. How about a visual example?",
    "Would it help to see a real-world application of this concept?",
    "Let's make this more interactive. Can you try solving a simple version of this problem?",
    "Sometimes a change of pace helps. Would you like to switch to a related topic and come back to this later?",
)

# single attempt; these are the failures that select the canned answer
_LLM_ERRORS = (httpx.HTTPError, ChatError, ValidationError)

class RecommendationService:
    """
    Asks the chat endpoint what the learner should do next, or how to pull them back in.
    Every answer (model or canned) is appended to the event sink.
    """
    def __init__(self, client: ChatClient, storage: MemStorage, *, rng: Optional[np.random.Generator]=None, user_id: Optional[int]=None):
        self.client = client
        self.storage = storage
        self.rng = rng if rng is not None else np.random.default_rng()
        self.user_id = user_id if user_id is not None else settings.demo_user_id

    async def next_step(self, request: Union[NextStepRequest, Dict[str,Any]]) -> Recommendation:
        req = NextStepRequest.model_validate(request)
        attention = req.learner_state.attention
        score = attention.score if attention and attention.score is not None else 0.5
        mastery = [m.model_dump(by_alias=True) for m in (req.learner_state.mastery or [])]
        context = req.context or "general learning"
        detail = req.options.detail if req.options and req.options.detail else "medium"

        prompt = (
            f"Learner attention score: {score} (0-1 scale)\n"
            f"Context: {context}\n"
            f"Mastery data: {json.dumps(mastery)}\n"
            f"Detail level: {detail}\n\n"
            "Based on this data, provide a recommendation for what the learner should do next.\n"
            "Keep suggestions concise, evidence-based, and personalized to attention level and context."
        )
        try:
            result = await self.client.complete_json([
                {"role": "system", "content": NEXT_STEP_SYSTEM},
                {"role": "user", "content": prompt},
            ])
            rec = Recommendation.model_validate({**result, "type": "llm-generated"})
        except _LLM_ERRORS:
            logger.exception("next-step recommendation failed, using fallback")
            rec = FALLBACK_RECOMMENDATION.model_copy()

        self.storage.create_learning_event(LearningEventIn(
            user_id=self.user_id, type="recommendation",
            data={"context": context, "attentionScore": score, "recommendation": rec.suggestion},
        ))
        return rec

    async def engagement(self, request: Union[EngagementRequest, Dict[str,Any]]) -> EngagementPrompt:
        req = EngagementRequest.model_validate(request)
        score = req.attention_score if req.attention_score is not None else 0.3
        context = req.context or "general learning"
        previous = list(req.previous_interventions or [])

        prompt = (
            f"Learner attention score: {score} (0-1 scale, lower means less attentive)\n"
            f"Context: {context}\n"
            f"Previous interventions: {json.dumps(previous)}\n\n"
            "The learner's attention appears to be dropping. Suggest a brief intervention to re-engage them.\n"
            "Keep your suggestion concise, friendly, and immediately actionable. The type should be one of:\n"
            + ", ".join(ENGAGEMENT_TYPES)
        )
        try:
            result = await self.client.complete_json([
                {"role": "system", "content": ENGAGEMENT_SYSTEM},
                {"role": "user", "content": prompt},
            ])
            out = EngagementPrompt.model_validate({**result, "source": "llm-generated"})
        except _LLM_ERRORS:
            logger.exception("engagement suggestion failed, using fallback")
            out = EngagementPrompt(message=self.pick_fallback(previous), type="attention-prompt", source="fallback")

        self.storage.create_learning_event(LearningEventIn(
            user_id=self.user_id, type="engagement",
            data={"context": context, "attentionScore": score, "intervention": out.message},
        ))
        return out

    def pick_fallback(self, previous: List[str]) -> str:
        fresh = [s for s in FALLBACK_ENGAGEMENT if s not in previous] or list(FALLBACK_ENGAGEMENT)
        return fresh[int(self.rng.integers(len(fresh)))]
