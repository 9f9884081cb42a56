"""Demo host: a toy world driven by an update loop with a console attached."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Optional, Sequence, TextIO

from ..console import Console, ConsoleConfig
from ..context import Callbacks
from ..errors import SchedulerError
from .commands import DEMO_COMMANDS, ListCommand, QueryCommand, ShrinkCommand
from .world import Grid, Position, Tick, Velocity, World, populate

LOGGER = logging.getLogger("simrepl.demo")


@dataclass
class LoopState:
    """Loop control flags flipped by the pause/resume/stop callbacks."""

    paused: bool = True
    stopped: threading.Event = field(default_factory=threading.Event)

    def callbacks(self, world: World) -> Callbacks:
        def pause(out: TextIO) -> None:
            self.paused = True

        def resume(out: TextIO) -> None:
            self.paused = False

        def stop(out: TextIO) -> None:
            self.stopped.set()

        return Callbacks(
            pause=pause,
            resume=resume,
            stop=stop,
            ticks=lambda: world.tick,
            snapshot=world.stats,
        )


def build_console(world: World, state: LoopState, *, config: Optional[ConsoleConfig] = None) -> Console:
    console = Console(world, state.callbacks(world), config=config)
    for name, command in DEMO_COMMANDS:
        console.add_command(name, command)
    return console


def run_demo(
    *,
    serve: Optional[str] = None,
    run: Sequence[str] = (),
    background: bool = False,
    interval: float = 0.05,
    max_ticks: Optional[int] = None,
    config: Optional[ConsoleConfig] = None,
    seed: Optional[int] = None,
) -> World:
    """Populate a world, attach a console and run the update loop until ``stop``.

    With ``serve`` the console listens on that address, otherwise it reads
    the local terminal. ``background`` hands command execution to the
    console's own thread; the update step is then submitted like a command.
    """
    world = World()
    populate(world, seed=seed)
    state = LoopState()
    console = build_console(world, state, config=config)
    if serve:
        server = console.serve(serve, *run)
        print(f"REPL server listening on port {server.port}")
    else:
        console.start(*run)
    try:
        if background:
            _run_background(console, world, state, interval, max_ticks)
        else:
            _run_cooperative(console, world, state, interval, max_ticks)
    except KeyboardInterrupt:
        LOGGER.info("interrupted")
    finally:
        console.close()
    return world


def _done(world: World, state: LoopState, max_ticks: Optional[int]) -> bool:
    return state.stopped.is_set() or (max_ticks is not None and world.tick >= max_ticks)


def _run_cooperative(console: Console, world: World, state: LoopState, interval: float, max_ticks: Optional[int]) -> None:
    while True:
        console.drain()
        if _done(world, state, max_ticks):
            break
        if not state.paused:
            world.update()
        time.sleep(interval)


def _run_background(console: Console, world: World, state: LoopState, interval: float, max_ticks: Optional[int]) -> None:
    console.run_background()

    def ticker() -> None:
        while not _done(world, state, max_ticks):
            if not state.paused:
                try:
                    console.scheduler.submit(world.update, label="update")
                except SchedulerError:
                    break
            time.sleep(interval)
        state.stopped.set()

    thread = threading.Thread(target=ticker, name="simrepl-ticker", daemon=True)
    thread.start()
    state.stopped.wait()
    thread.join(timeout=1.0)


__all__ = [
    "Grid",
    "ListCommand",
    "LoopState",
    "Position",
    "QueryCommand",
    "ShrinkCommand",
    "Tick",
    "Velocity",
    "World",
    "build_console",
    "populate",
    "run_demo",
]
