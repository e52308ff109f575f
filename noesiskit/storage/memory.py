from __future__ import annotations
import time, itertools
from typing import Dict, List, Optional
from pydantic import BaseModel
from ..runtime.events import LearningEvent, LearningEventIn

class User(BaseModel):
    id: int
    username: str
    password: str

class MemStorage:
    """
    Process-local store for users and learning events.
    Ids are handed out from per-table counters starting at 1; nothing is persisted.
    """
    def __init__(self, seed_user: bool=True):
        self.users: Dict[int,User] = {}
        self.learning_events: Dict[int,LearningEvent] = {}
        self._user_ids = itertools.count(1)
        self._event_ids = itertools.count(1)
        if seed_user:
            self.create_user("demo_user", "password123")

    def get_user(self, id: int) -> Optional[User]:
        return self.users.get(id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        return next((u for u in self.users.values() if u.username == username), None)

    def create_user(self, username: str, password: str) -> User:
        user = User(id=next(self._user_ids), username=username, password=password)
        self.users[user.id] = user
        return user

    def create_learning_event(self, event: LearningEventIn) -> LearningEvent:
        ev = LearningEvent(
            id=next(self._event_ids),
            user_id=event.user_id or 1,
            type=event.type,
            data=dict(event.data),
            timestamp=event.timestamp if event.timestamp is not None else time.time(),
        )
        self.learning_events[ev.id] = ev
        return ev

    def get_learning_event(self, id: int) -> Optional[LearningEvent]:
        return self.learning_events.get(id)

    def get_learning_events_by_user_id(self, user_id: int) -> List[LearningEvent]:
        return [e for e in self.learning_events.values() if e.user_id == user_id]

    def get_learning_events_by_type(self, type: str) -> List[LearningEvent]:
        return [e for e in self.learning_events.values() if e.type == type]
