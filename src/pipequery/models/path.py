"""Stage paths: addresses of stages anywhere in a query tree."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from pipequery.errors import PathError


@dataclass(frozen=True)
class PathHop:
    """One step of a stage path.

    ``field_index`` names a nested-query field of the stage at ``stage_index``
    to descend into; it is ``None`` on the final hop.
    """

    stage_index: int
    field_index: int | None = None


@dataclass(frozen=True)
class StagePath:
    """An ordered sequence of hops locating a stage.

    The empty path addresses stage 0 of the root pipeline.
    """

    hops: tuple[PathHop, ...] = ()

    def __post_init__(self) -> None:
        for i, hop in enumerate(self.hops):
            if hop.stage_index < 0:
                raise PathError(f"Negative stage index in hop {i}")
            is_last = i == len(self.hops) - 1
            if is_last and hop.field_index is not None:
                raise PathError("The last hop of a stage path cannot name a field")
            if not is_last and hop.field_index is None:
                raise PathError(f"Hop {i} of a stage path must name a nested query field")
            if hop.field_index is not None and hop.field_index < 0:
                raise PathError(f"Negative field index in hop {i}")

    @classmethod
    def root(cls, stage_index: int = 0) -> StagePath:
        return cls((PathHop(stage_index),))

    @classmethod
    def from_hops(cls, hops: Iterable[tuple[int, int | None] | int]) -> StagePath:
        """Build a path from ``(stage_index, field_index)`` pairs or bare stage indices."""
        built: list[PathHop] = []
        for hop in hops:
            if isinstance(hop, int):
                built.append(PathHop(hop))
            else:
                built.append(PathHop(*hop))
        return cls(tuple(built))

    @property
    def normalized(self) -> tuple[PathHop, ...]:
        return self.hops or (PathHop(0),)

    @property
    def last(self) -> PathHop:
        return self.normalized[-1]

    @property
    def depth(self) -> int:
        """Number of nested queries crossed to reach the stage."""
        return len(self.normalized) - 1

    def nested(self, field_index: int, stage_index: int = 0) -> StagePath:
        """Address ``stage_index`` of the nested query at ``field_index`` of this stage."""
        hops = self.normalized
        head = hops[:-1] + (PathHop(hops[-1].stage_index, field_index),)
        return StagePath(head + (PathHop(stage_index),))

    def truncate(self, depth: int) -> StagePath:
        """Address the stage reached after ``depth`` nested-query descents."""
        hops = self.normalized
        if not 0 <= depth < len(hops):
            raise PathError(f"Cannot truncate a path of depth {self.depth} to {depth}")
        return StagePath(hops[:depth] + (PathHop(hops[depth].stage_index),))

    def parent(self) -> tuple[StagePath | None, int | None, int]:
        """Split into (parent stage path, field index in parent, stage index).

        For a stage in the root pipeline the parent path and field index are ``None``.
        """
        hops = self.normalized
        if len(hops) == 1:
            return None, None, hops[0].stage_index
        parent_hop = hops[-2]
        parent = StagePath(hops[:-2] + (PathHop(parent_hop.stage_index),))
        return parent, parent_hop.field_index, hops[-1].stage_index
