"""A small entity/component world used by the demo host."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

SLOT_BYTES = 64


@dataclass
class Position:
    x: float = 0.0
    y: float = 0.0


@dataclass
class Velocity:
    x: float = 0.0
    y: float = 0.0


@dataclass
class Grid:
    width: int = 100
    height: int = 60


@dataclass
class Tick:
    tick: int = 0


class UnknownComponent(KeyError):
    def __str__(self) -> str:
        return f"unknown component type '{self.args[0]}'"


class World:
    """Entities are integer ids mapping to a dict of components keyed by type name.

    Storage grows in doubling chunks of ``capacity`` slots and only gives memory
    back on :meth:`shrink`, so memory statistics behave like a real pool.
    """

    def __init__(self, capacity: int = 32) -> None:
        self.initial_capacity = max(1, int(capacity))
        self.capacity = self.initial_capacity
        self.entities: Dict[int, Dict[str, Any]] = {}
        self.resources: Dict[str, Any] = {}
        self._component_types: Dict[str, type] = {}
        self._next_id = 1
        self.add_resource(Tick())

    #
    # Resources and components
    #
    def add_resource(self, resource: Any) -> None:
        self.resources[type(resource).__name__] = resource

    def resource(self, kind: type) -> Any:
        return self.resources.get(kind.__name__)

    @property
    def tick(self) -> int:
        return self.resource(Tick).tick

    def component_names(self) -> List[str]:
        return list(self._component_types)

    def component_type(self, name: str) -> type:
        try:
            return self._component_types[name]
        except KeyError:
            raise UnknownComponent(name) from None

    #
    # Entities
    #
    def spawn(self, *components: Any) -> int:
        entity = self._next_id
        self._next_id += 1
        values: Dict[str, Any] = {}
        for component in components:
            name = type(component).__name__
            self._component_types.setdefault(name, type(component))
            values[name] = component
        self.entities[entity] = values
        while len(self.entities) > self.capacity:
            self.capacity *= 2
        return entity

    def despawn(self, entity: int) -> None:
        del self.entities[entity]

    def query(
        self,
        comps: Sequence[str] = (),
        *,
        with_: Sequence[str] = (),
        without: Sequence[str] = (),
        exclusive: bool = False,
    ) -> Iterator[Tuple[int, Dict[str, Any]]]:
        """Yield ``(entity, components)`` for matching entities, in id order.

        Raises :class:`UnknownComponent` for names never seen in this world.
        """
        required = {self.component_type(name).__name__ for name in [*comps, *with_]}
        excluded = {self.component_type(name).__name__ for name in without}
        for entity in sorted(self.entities):
            values = self.entities[entity]
            keys = set(values)
            if not required <= keys or keys & excluded:
                continue
            if exclusive and keys != required:
                continue
            yield entity, values

    def count(self, *args: Any, **kwargs: Any) -> int:
        return sum(1 for _ in self.query(*args, **kwargs))

    def archetypes(self) -> Dict[Tuple[str, ...], int]:
        counts: Dict[Tuple[str, ...], int] = {}
        for values in self.entities.values():
            key = tuple(sorted(values))
            counts[key] = counts.get(key, 0) + 1
        return counts

    #
    # Simulation
    #
    def update(self) -> None:
        """Advance one tick: move by velocity and wrap around the grid."""
        grid: Optional[Grid] = self.resource(Grid)
        for values in self.entities.values():
            pos = values.get("Position")
            vel = values.get("Velocity")
            if pos is None or vel is None:
                continue
            pos.x += vel.x
            pos.y += vel.y
            if grid is not None:
                pos.x %= grid.width
                pos.y %= grid.height
        self.resource(Tick).tick += 1

    @property
    def memory(self) -> int:
        return self.capacity * SLOT_BYTES

    def shrink(self) -> None:
        """Release storage not needed by the live entities."""
        capacity = self.initial_capacity
        while capacity < len(self.entities):
            capacity *= 2
        self.capacity = capacity

    def stats(self) -> Dict[str, Any]:
        return {
            "entities": len(self.entities),
            "capacity": self.capacity,
            "memory": self.memory,
            "components": len(self._component_types),
            "archetypes": len(self.archetypes()),
            "resources": len(self.resources),
        }


def populate(world: World, *, count: int = 10, seed: Optional[int] = None) -> None:
    """Add a grid resource and ``count`` static plus ``count`` moving entities."""
    rng = random.Random(seed)
    grid = Grid(width=100, height=60)
    world.add_resource(grid)
    for _ in range(count):
        world.spawn(Position(float(rng.randrange(grid.width)), float(rng.randrange(grid.height))))
    for _ in range(count):
        world.spawn(
            Position(float(rng.randrange(grid.width)), float(rng.randrange(grid.height))),
            Velocity(rng.choice((-1.0, 1.0)), rng.choice((-1.0, 1.0))),
        )
