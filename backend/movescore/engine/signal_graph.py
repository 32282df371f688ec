"""
Incremental signal graph.

Four base signals (progress ratio and the three acceleration axes) are set
straight from each sample. Derived signals are computed from other signals:

- DERIVATIVE: d(source)/d(progress) between two consecutive samples
- NORM_3D:    sqrt(x² + y² + z²)
- AVERAGE:    running arithmetic mean since the move started

The node layout is immutable and shared; a SignalGraph only owns the
per-move runtime values.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)


# Returned for signals that are not part of the graph
HUGE_NEGATIVE_VALUE = -1.0e32


class SignalId(IntEnum):
    BASE_PROGRESS_RATIO = 0
    BASE_AX = 1
    BASE_AY = 2
    BASE_AZ = 3
    ACCEL_NORM = 4
    ACCEL_DEV_NORM = 5
    AX_DEV = 6
    AY_DEV = 7
    AZ_DEV = 8
    ACCEL_NORM_AVG_NP = 9
    ACCEL_DEV_NORM_AVG_NP = 10
    AX_DEV_AVG_DIR_NP = 11
    AY_DEV_AVG_DIR_NP = 12
    AZ_DEV_AVG_DIR_NP = 13


BASE_SIGNAL_IDS = (
    SignalId.BASE_PROGRESS_RATIO,
    SignalId.BASE_AX,
    SignalId.BASE_AY,
    SignalId.BASE_AZ,
)


class SignalKind(Enum):
    BASE = "base"
    DERIVATIVE = "derivative"
    NORM_3D = "norm_3d"
    AVERAGE = "average"


@dataclass(frozen=True)
class SignalDefinition:
    signal_id: SignalId
    kind: SignalKind
    sources: Tuple[SignalId, ...] = ()


SIGNAL_CATALOGUE: Dict[SignalId, SignalDefinition] = {
    d.signal_id: d for d in (
        SignalDefinition(SignalId.BASE_PROGRESS_RATIO, SignalKind.BASE),
        SignalDefinition(SignalId.BASE_AX, SignalKind.BASE),
        SignalDefinition(SignalId.BASE_AY, SignalKind.BASE),
        SignalDefinition(SignalId.BASE_AZ, SignalKind.BASE),
        SignalDefinition(SignalId.AX_DEV, SignalKind.DERIVATIVE,
                         (SignalId.BASE_AX, SignalId.BASE_PROGRESS_RATIO)),
        SignalDefinition(SignalId.AY_DEV, SignalKind.DERIVATIVE,
                         (SignalId.BASE_AY, SignalId.BASE_PROGRESS_RATIO)),
        SignalDefinition(SignalId.AZ_DEV, SignalKind.DERIVATIVE,
                         (SignalId.BASE_AZ, SignalId.BASE_PROGRESS_RATIO)),
        SignalDefinition(SignalId.ACCEL_NORM, SignalKind.NORM_3D,
                         (SignalId.BASE_AX, SignalId.BASE_AY, SignalId.BASE_AZ)),
        SignalDefinition(SignalId.ACCEL_DEV_NORM, SignalKind.NORM_3D,
                         (SignalId.AX_DEV, SignalId.AY_DEV, SignalId.AZ_DEV)),
        SignalDefinition(SignalId.ACCEL_NORM_AVG_NP, SignalKind.AVERAGE, (SignalId.ACCEL_NORM,)),
        SignalDefinition(SignalId.ACCEL_DEV_NORM_AVG_NP, SignalKind.AVERAGE, (SignalId.ACCEL_DEV_NORM,)),
        SignalDefinition(SignalId.AX_DEV_AVG_DIR_NP, SignalKind.AVERAGE, (SignalId.AX_DEV,)),
        SignalDefinition(SignalId.AY_DEV_AVG_DIR_NP, SignalKind.AVERAGE, (SignalId.AY_DEV,)),
        SignalDefinition(SignalId.AZ_DEV_AVG_DIR_NP, SignalKind.AVERAGE, (SignalId.AZ_DEV,)),
    )
}


@dataclass(frozen=True)
class SignalNode:
    """
    One signal of a built graph.

    `sources` are indices into the owning layout. When
    `updates_on_first_sample` is False the very first sample only seeds the
    node (a derivative needs a previous sample) and anything fed by it.
    """
    index: int
    signal_id: SignalId
    kind: SignalKind
    sources: Tuple[int, ...]
    updates_on_first_sample: bool


@dataclass(frozen=True)
class GraphLayout:
    """Immutable arena of signal nodes in dependency order."""
    nodes: Tuple[SignalNode, ...]

    def index(self, signal_id: SignalId) -> Optional[int]:
        for node in self.nodes:
            if node.signal_id == signal_id:
                return node.index
        return None

    def __contains__(self, signal_id: SignalId) -> bool:
        return self.index(signal_id) is not None

    @property
    def signal_ids(self) -> Tuple[SignalId, ...]:
        return tuple(node.signal_id for node in self.nodes)


def build_layout(signal_ids: Iterable[SignalId]) -> GraphLayout:
    """
    Build a layout containing the base signals plus every requested signal
    and, recursively, the signals they are computed from.

    Requesting the same signal twice is a no-op; sources always come before
    their dependents.
    """
    nodes: List[SignalNode] = []
    built: Dict[SignalId, int] = {}

    def add(signal_id: SignalId) -> int:
        if signal_id in built:
            return built[signal_id]
        definition = SIGNAL_CATALOGUE[signal_id]
        sources = tuple(add(source) for source in definition.sources)
        if definition.kind is SignalKind.DERIVATIVE:
            on_first = False
        else:
            on_first = all(nodes[i].updates_on_first_sample for i in sources)
        node = SignalNode(
            index=len(nodes),
            signal_id=signal_id,
            kind=definition.kind,
            sources=sources,
            updates_on_first_sample=on_first,
        )
        nodes.append(node)
        built[signal_id] = node.index
        return node.index

    for base_id in BASE_SIGNAL_IDS:
        add(base_id)
    for signal_id in signal_ids:
        add(SignalId(signal_id))

    return GraphLayout(nodes=tuple(nodes))


class SignalGraph:
    """Runtime values of a GraphLayout for one move at a time."""

    def __init__(self, layout: GraphLayout):
        self.layout = layout
        self._base_indices = tuple(layout.index(signal_id) for signal_id in BASE_SIGNAL_IDS)
        self.reset()

    def reset(self) -> None:
        n = len(self.layout.nodes)
        self._values: List[float] = [0.0] * n
        self._prev_source: List[float] = [0.0] * n
        self._prev_progress: List[float] = [0.0] * n
        self._sums: List[float] = [0.0] * n
        self._counts: List[int] = [0] * n
        self._first_update_done = False

    @property
    def first_update_done(self) -> bool:
        return self._first_update_done

    def update(self, progress_ratio: float, ax: float, ay: float, az: float) -> None:
        """Set the base signals, then update every derived signal once, in order."""
        for index, value in zip(self._base_indices, (progress_ratio, ax, ay, az)):
            self._values[index] = value

        first = not self._first_update_done
        for node in self.layout.nodes:
            if first and not node.updates_on_first_sample:
                self._seed(node)
            else:
                self._update_node(node)
        self._first_update_done = True

    def _seed(self, node: SignalNode) -> None:
        if node.kind is SignalKind.DERIVATIVE:
            source, progress = node.sources
            self._prev_source[node.index] = self._values[source]
            self._prev_progress[node.index] = self._values[progress]

    def _update_node(self, node: SignalNode) -> None:
        values = self._values
        i = node.index
        if node.kind is SignalKind.BASE:
            return
        elif node.kind is SignalKind.DERIVATIVE:
            source, progress = node.sources
            delta_progress = values[progress] - self._prev_progress[i]
            if delta_progress == 0:
                values[i] = 0.0
            else:
                values[i] = (values[source] - self._prev_source[i]) / delta_progress
            self._prev_source[i] = values[source]
            self._prev_progress[i] = values[progress]
        elif node.kind is SignalKind.NORM_3D:
            x, y, z = (values[s] for s in node.sources)
            values[i] = math.sqrt(x * x + y * y + z * z)
        elif node.kind is SignalKind.AVERAGE:
            self._sums[i] += values[node.sources[0]]
            self._counts[i] += 1
            values[i] = self._sums[i] / self._counts[i]
        else:
            raise ValueError(f"Unknown signal kind: {node.kind}")

    def value_at(self, index: int) -> float:
        return self._values[index]

    def value(self, signal_id: SignalId) -> float:
        index = self.layout.index(signal_id)
        if index is None:
            return HUGE_NEGATIVE_VALUE
        return self._values[index]
