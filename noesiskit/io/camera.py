from __future__ import annotations
import cv2, logging, time
from typing import Any, Dict, Iterator, Optional, Protocol, Union
from pydantic import BaseModel

logger = logging.getLogger(__name__)

class CaptureError(RuntimeError):
    """The capture device could not be acquired (e.g. permission denied)."""

class CaptureOptions(BaseModel):
    camera: Union[int,str] = 0
    width: int = 640
    height: int = 480

class CaptureSource(Protocol):
    def acquire(self, options: CaptureOptions) -> Any: ...
    def release(self, handle: Any) -> None: ...

class OpenCVCapture:
    """Opens a cv2.VideoCapture and hands it back as an opaque handle."""
    def acquire(self, options: CaptureOptions) -> cv2.VideoCapture:
        cap = cv2.VideoCapture(options.camera)
        if options.width:  cap.set(cv2.CAP_PROP_FRAME_WIDTH, options.width)
        if options.height: cap.set(cv2.CAP_PROP_FRAME_HEIGHT, options.height)
        if not cap.isOpened():
            cap.release()
            raise CaptureError(f"Cannot open camera {options.camera!r}")
        logger.info("camera %r opened", options.camera)
        return cap

    def release(self, handle: cv2.VideoCapture) -> None:
        handle.release()
        logger.info("camera released")

def frames(camera: int|str=0, width: int=640, height: int=480,
           source: Optional[CaptureSource]=None) -> Iterator[Dict[str,Any]]:
    """Yield {"image", "meta"} dicts until the device runs dry; raises CaptureError if it never opens."""
    src = source or OpenCVCapture()
    cap = src.acquire(CaptureOptions(camera=camera, width=width, height=height))
    try:
        while True:
            ok, frame = cap.read()
            if not ok: break
            yield {"image": frame, "meta": {"ts": time.time()}}
    finally:
        src.release(cap)
