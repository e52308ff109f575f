from __future__ import annotations
import typer, asyncio, logging, yaml
from rich import print
from rich.logging import RichHandler
from pathlib import Path
from typing import List, Optional
from pydantic import ValidationError
from .io.camera import CaptureError, frames
from .orchestration.client import ChatClient
from .orchestration.recommend import RecommendationService
from .runtime.events import AttentionSample, Region, ws_broadcast
from .session import LearningSession
from .sim.config import SimulatorConfig, load_config
from .sim.tracker import AttentionSimulator
from .storage.memory import MemStorage

app = typer.Typer(add_completion=False, help="Noesis attention simulator CLI (noesis)")

@app.callback()
def setup_logging(verbose: bool = typer.Option(False, "--verbose", "-v")):
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format="%(message)s",
                        datefmt="[%X]", handlers=[RichHandler(rich_tracebacks=True)])

def _build_config(config: Optional[Path], **overrides) -> SimulatorConfig:
    try:
        if config is not None:
            return load_config(config, **overrides)
        return SimulatorConfig(**{k:v for k,v in overrides.items() if v is not None})
    except (ValidationError, ValueError, yaml.YAMLError) as err:
        print(f"[red]Invalid configuration[/red]\n{err}")
        raise typer.Exit(1)

@app.command()
def run(config: Optional[Path] = typer.Option(None, exists=True, dir_okay=False, help="YAML file with SimulatorConfig fields"),
        interval: Optional[float] = typer.Option(None, help="Seconds between ticks"),
        history: Optional[int] = typer.Option(None, help="Scores kept for focus stability"),
        target: Optional[str] = typer.Option(None, help="Target region as left,top,width,height"),
        camera: Optional[int] = typer.Option(None, help="Open this camera while tracking"),
        ticks: int = typer.Option(0, help="Stop after N samples (0 = until Ctrl-C)"),
        seed: Optional[int] = None,
        ws: bool = typer.Option(False, help="Broadcast samples over WebSocket"),
        port: int = 8765,
        context: str = "general learning",
        llm: bool = typer.Option(False, help="Ask the chat endpoint for an intervention on disengagement")):
    """
    Run the simulator and print one JSON line per sample.
    """
    cfg = _build_config(config, interval_s=interval, history_size=history, camera=camera)
    try:
        region = Region.parse(target) if target else None
    except ValueError as err:
        raise typer.BadParameter(str(err), param_hint="--target")
    queue: "asyncio.Queue[str]" = asyncio.Queue()

    async def main():
        sim = AttentionSimulator(cfg, seed=seed)
        storage = MemStorage()
        recommender = RecommendationService(ChatClient(), storage) if llm else None
        session = LearningSession(sim, storage, recommender, context=context)
        done = asyncio.Event()
        count = 0

        def emit(sample: AttentionSample):
            nonlocal count
            line = sample.model_dump_json()
            typer.echo(line)
            if ws: queue.put_nowait(line)
            count += 1
            if ticks and count >= ticks:
                sim.stop(); done.set()

        sim.subscribe(emit)
        sim.on_disengage(lambda s: print(f"[yellow]disengaged[/yellow] score={s.score:.3f}"))
        bcast = asyncio.create_task(ws_broadcast(queue, "0.0.0.0", port)) if ws else None
        try:
            await session.start(region)
            await done.wait()
        except CaptureError as err:
            print(f"[red]{err}[/red]")
            raise typer.Exit(1)
        finally:
            await session.aclose()
            if bcast is not None:
                bcast.cancel()
                await asyncio.gather(bcast, return_exceptions=True)
            if recommender is not None:
                await recommender.client.aclose()

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass

@app.command()
def recommend(score: float = typer.Option(0.5, min=0.0, max=1.0), context: str = "general learning"):
    """
    Ask for the learner's next step given an attention score.
    """
    import time
    async def main():
        svc = RecommendationService(ChatClient(), MemStorage())
        try:
            return await svc.next_step({"learnerState": {"attention": {"score": score}, "timestamp": time.time()},
                                        "context": context})
        finally:
            await svc.client.aclose()
    print(asyncio.run(main()).model_dump(by_alias=True))

@app.command()
def engage(score: float = typer.Option(0.3, min=0.0, max=1.0), context: str = "general learning",
           previous: List[str] = typer.Option([], help="Interventions already shown")):
    """
    Ask for a short re-engagement prompt.
    """
    async def main():
        svc = RecommendationService(ChatClient(), MemStorage())
        try:
            return await svc.engagement({"attentionScore": score, "context": context,
                                         "previousInterventions": previous})
        finally:
            await svc.client.aclose()
    print(asyncio.run(main()).model_dump(by_alias=True))

@app.command()
def camera(device: str = typer.Argument("0", help="Camera index or video path"), count: int = typer.Option(5, min=1), width: int = 640, height: int = 480):
    """
    Check that a capture device opens and delivers frames.
    """
    n = 0
    try:
        for f in frames(int(device) if device.isdigit() else device, width, height):
            h, w = f["image"].shape[:2]
            print(f"frame {n}: {w}x{h} ts={f['meta']['ts']:.3f}")
            n += 1
            if n >= count: break
    except CaptureError as err:
        print(f"[red]{err}[/red]")
        raise typer.Exit(1)
    if n == 0:
        print("[yellow]camera opened but returned no frames[/yellow]")
        raise typer.Exit(1)

if __name__ == "__main__":
    app()
