from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Literal, Dict, Any
import asyncio, websockets, time

Status = Literal["inactive","tracking"]

class GazePoint(BaseModel):
    model_config = ConfigDict(frozen=True)
    x: float = 0.0; y: float = 0.0

class Region(BaseModel):
    """Axis-aligned bounding box of the content the learner should look at."""
    model_config = ConfigDict(frozen=True)
    left: float; top: float
    width: float = Field(ge=0); height: float = Field(ge=0)

    @property
    def right(self) -> float: return self.left + self.width
    @property
    def bottom(self) -> float: return self.top + self.height
    @property
    def center(self) -> GazePoint:
        return GazePoint(x=self.left + self.width/2, y=self.top + self.height/2)

    def contains(self, p: GazePoint) -> bool:
        return self.left <= p.x <= self.right and self.top <= p.y <= self.bottom

    @classmethod
    def parse(cls, text: str) -> "Region":
        """'left,top,width,height' -> Region"""
        parts = [float(v) for v in text.split(",")]
        if len(parts) != 4:
            raise ValueError(f"expected left,top,width,height, got {text!r}")
        l,t,w,h = parts
        return cls(left=l, top=t, width=w, height=h)

class AttentionSample(BaseModel):
    model_config = ConfigDict(frozen=True)
    score: float = Field(default=0.0, ge=0, le=1)
    focus_stability: float = Field(default=0.0, ge=0, le=1)
    cognitive_load: float = Field(default=0.3, ge=0, le=1)
    gaze_point: GazePoint = GazePoint()
    timestamp: float = Field(default_factory=lambda: time.time())
    status: Status = "inactive"

class LearningEvent(BaseModel):
    id: int
    user_id: int = 1
    type: str
    data: Dict[str,Any] = {}
    timestamp: float = Field(default_factory=lambda: time.time())

class LearningEventIn(BaseModel):
    user_id: Optional[int] = None
    type: str
    data: Dict[str,Any] = {}
    timestamp: Optional[float] = None

async def ws_broadcast(queue: "asyncio.Queue[str]", host="0.0.0.0", port=8765):
    """Fan every queued message out to all connected clients."""
    clients=set()
    async def handler(websocket):
        clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            clients.discard(websocket)
    async def pump():
        while True:
            msg = await queue.get()
            if clients:
                await asyncio.gather(*[c.send(msg) for c in list(clients)], return_exceptions=True)
    async with websockets.serve(handler, host, port):
        await pump()
