"""
Interactive Rail Classification
Separates long structural rails from short cross-braces, with manual override before commit
"""

import numpy as np
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple, Union
import logging

from src.models.edge_mapping.chain_tracing import Chain
from src.utils.geometry import ray_segment_distance


class SessionState(Enum):
    """Lifecycle of the classifier"""
    IDLE = "idle"
    ACTIVE = "active"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


# Commands issued by the presentation layer

@dataclass(frozen=True, eq=False)
class Activate:
    chains: Tuple[Chain, ...]


@dataclass(frozen=True)
class HoverAt:
    """Pick ray in world space"""
    origin: Tuple[float, float, float]
    direction: Tuple[float, float, float]


@dataclass(frozen=True)
class ClickAt:
    """Pick ray in world space"""
    origin: Tuple[float, float, float]
    direction: Tuple[float, float, float]


@dataclass(frozen=True)
class RaiseThreshold:
    pass


@dataclass(frozen=True)
class LowerThreshold:
    pass


@dataclass(frozen=True)
class SelectAllVisible:
    pass


@dataclass(frozen=True)
class ClearSelection:
    pass


@dataclass(frozen=True)
class Confirm:
    pass


@dataclass(frozen=True)
class Cancel:
    pass


Command = Union[Activate, HoverAt, ClickAt, RaiseThreshold, LowerThreshold,
                SelectAllVisible, ClearSelection, Confirm, Cancel]


# Events emitted back to the caller

@dataclass(frozen=True, eq=False)
class SelectionConfirmed:
    chains: Tuple[Chain, ...]


@dataclass(frozen=True)
class SelectionCancelled:
    pass


Event = Union[SelectionConfirmed, SelectionCancelled]


KEY_BINDINGS: Dict[str, Callable[[], Command]] = {
    'Enter': Confirm,
    'Escape': Cancel,
    ']': RaiseThreshold,
    '[': LowerThreshold,
    'a': SelectAllVisible,
    'A': SelectAllVisible,
    'n': ClearSelection,
    'N': ClearSelection,
}


def command_for_key(key: str) -> Optional[Command]:
    """Command bound to a key name, or None"""
    factory = KEY_BINDINGS.get(key)
    return factory() if factory is not None else None


@dataclass(frozen=True)
class ChainView:
    """Per-chain display state for the presentation layer"""
    index: int
    length: float
    visible: bool
    selected: bool
    hovered: bool


class RailSession:
    """
    State of one classification session

    The chain list is a snapshot taken at activation. Lengths are computed once.
    Chains shorter than the threshold are hidden and can never be selected or
    hovered while hidden.
    """

    AUTO_THRESHOLD_RATIO = 0.5
    THRESHOLD_STEP_RATIO = 0.05

    def __init__(self, chains: Sequence[Chain], pick_threshold: float = 0.02):
        self.chains: Tuple[Chain, ...] = tuple(chains)
        self.pick_threshold = pick_threshold
        self.lengths = np.array([chain.length for chain in self.chains], dtype=np.float64)
        self.max_length = float(self.lengths.max()) if len(self.lengths) else 0.0

        self.threshold = self.auto_threshold(self.lengths)
        self.selected: Set[int] = {i for i, length in enumerate(self.lengths) if length >= self.threshold}
        self.visible = np.ones(len(self.chains), dtype=bool)
        self.hovered: Optional[int] = None

        self.apply_filter()

    @classmethod
    def auto_threshold(cls, lengths: np.ndarray) -> float:
        """
        Half the longest chain

        Main rails of a truss are the longest chains and roughly equal in length;
        cross-braces and diagonals fall well below half of them.
        """
        if len(lengths) <= 1:
            return 0.0
        max_length = float(np.max(lengths))
        if max_length == 0:
            return 0.0
        return max_length * cls.AUTO_THRESHOLD_RATIO

    def apply_filter(self):
        """Hide (and deselect) every chain below the threshold, show the rest"""
        for i, length in enumerate(self.lengths):
            if self.threshold > 0 and length < self.threshold:
                self.visible[i] = False
                self.selected.discard(i)
            else:
                self.visible[i] = True

        if self.hovered is not None and not self.visible[self.hovered]:
            self.hovered = None

    def adjust_threshold(self, direction: int):
        """
        Move the threshold by 5% of the longest chain

        Args:
            direction: +1 hides more chains, -1 shows more
        """
        if self.max_length == 0:
            return

        step = self.max_length * self.THRESHOLD_STEP_RATIO
        self.threshold = max(0.0, self.threshold + direction * step)
        self.apply_filter()

    def hit_test(self, origin: Sequence[float], direction: Sequence[float]) -> Optional[int]:
        """
        Visible chain picked by a ray

        Returns:
            Index of the chain passing within pick_threshold of the ray whose
            closest approach is nearest the ray origin, or None
        """
        best_idx = None
        best_depth = np.inf

        for i, chain in enumerate(self.chains):
            if not self.visible[i] or len(chain.points) < 2:
                continue

            points = chain.points
            ends = np.roll(points, -1, axis=0) if chain.closed else points[1:]
            for start, end in zip(points, ends):
                distance, depth = ray_segment_distance(origin, direction, start, end)
                if distance <= self.pick_threshold and depth < best_depth:
                    best_depth = depth
                    best_idx = i

        return best_idx

    def hover(self, origin: Sequence[float], direction: Sequence[float]):
        self.hovered = self.hit_test(origin, direction)

    def toggle(self, origin: Sequence[float], direction: Sequence[float]) -> Optional[int]:
        hit = self.hit_test(origin, direction)
        if hit is None:
            return None

        if hit in self.selected:
            self.selected.discard(hit)
        else:
            self.selected.add(hit)
        return hit

    def select_all_visible(self):
        self.selected.update(int(i) for i in np.flatnonzero(self.visible))

    def clear_selection(self):
        self.selected.clear()

    def selected_chains(self) -> Tuple[Chain, ...]:
        """Selected chains in ascending chain index"""
        return tuple(self.chains[i] for i in sorted(self.selected))

    def chain_views(self) -> List[ChainView]:
        return [
            ChainView(
                index=i,
                length=float(self.lengths[i]),
                visible=bool(self.visible[i]),
                selected=i in self.selected,
                hovered=i == self.hovered
            )
            for i in range(len(self.chains))
        ]

    def status_text(self) -> str:
        selected = len(self.selected)
        hidden = int(np.sum(~self.visible))

        msg = f"Edge Pick: {selected} main tube{'s' if selected != 1 else ''} selected"
        if hidden > 0:
            msg += f" ({hidden} cross-braces hidden)"
        msg += " - Enter confirm, Esc cancel, Click toggle, [/] adjust filter"
        return msg

    def release(self):
        """Drop all per-session state"""
        self.chains = ()
        self.lengths = np.zeros(0)
        self.max_length = 0.0
        self.visible = np.zeros(0, dtype=bool)
        self.selected.clear()
        self.hovered = None
        self.threshold = 0.0


class RailClassifier:
    """
    Single-owner state machine around a RailSession

    Every input is a discrete command passed to ``handle``; the only outputs are
    the returned events. Confirm and Cancel both end the session through the same
    deactivation path, which releases session state exactly once.
    """

    def __init__(self, pick_threshold: float = 0.02):
        """
        Initialize rail classifier

        Args:
            pick_threshold: Ray-to-chain distance (meters) that counts as a hit
        """
        self.pick_threshold = pick_threshold
        self.state = SessionState.IDLE
        self.session: Optional[RailSession] = None
        self.deactivation_count = 0
        self.logger = logging.getLogger(__name__)

        self._handlers = {
            HoverAt: self._on_hover,
            ClickAt: self._on_click,
            RaiseThreshold: lambda command: self._on_adjust(+1),
            LowerThreshold: lambda command: self._on_adjust(-1),
            SelectAllVisible: self._on_select_all,
            ClearSelection: self._on_clear,
            Confirm: self._on_confirm,
            Cancel: self._on_cancel,
        }

    @property
    def is_active(self) -> bool:
        return self.state is SessionState.ACTIVE

    def handle(self, command: Command) -> Optional[Event]:
        """
        Apply one command

        Args:
            command: Command from the presentation layer

        Returns:
            SelectionConfirmed / SelectionCancelled when the session ends, else None
        """
        if isinstance(command, Activate):
            self._activate(command.chains)
            return None

        handler = self._handlers.get(type(command))
        if handler is None:
            raise TypeError(f"Unknown command: {command!r}")

        if not self.is_active:
            self.logger.debug(f"Ignoring {type(command).__name__} while {self.state.value}")
            return None

        return handler(command)

    # Convenience entry points

    def activate(self, chains: Sequence[Chain]):
        return self.handle(Activate(tuple(chains)))

    def hover_at(self, origin, direction):
        return self.handle(HoverAt(tuple(origin), tuple(direction)))

    def click_at(self, origin, direction):
        return self.handle(ClickAt(tuple(origin), tuple(direction)))

    def raise_threshold(self):
        return self.handle(RaiseThreshold())

    def lower_threshold(self):
        return self.handle(LowerThreshold())

    def select_all_visible(self):
        return self.handle(SelectAllVisible())

    def clear_selection(self):
        return self.handle(ClearSelection())

    def confirm(self) -> Optional[Event]:
        return self.handle(Confirm())

    def cancel(self) -> Optional[Event]:
        return self.handle(Cancel())

    def reset(self):
        """Drop any session and return to IDLE"""
        self._deactivate()
        self.state = SessionState.IDLE

    # Transitions

    def _activate(self, chains: Sequence[Chain]):
        if self.session is not None:
            self._deactivate()

        self.session = RailSession(chains, pick_threshold=self.pick_threshold)
        self.state = SessionState.ACTIVE

        sorted_lengths = np.sort(self.session.lengths)
        self.logger.debug(f"Chain lengths (sorted): {np.round(sorted_lengths, 4).tolist()}")
        self.logger.info(f"Rail selection started: {len(self.session.chains)} chains, "
                         f"auto threshold {self.session.threshold:.4f} m, "
                         f"{len(self.session.selected)} selected")

    def _deactivate(self):
        if self.session is None:
            return
        self.session.release()
        self.session = None
        self.deactivation_count += 1

    def _on_hover(self, command: HoverAt):
        self.session.hover(command.origin, command.direction)

    def _on_click(self, command: ClickAt):
        hit = self.session.toggle(command.origin, command.direction)
        if hit is not None:
            self.logger.debug(f"Toggled chain {hit}")

    def _on_adjust(self, direction: int):
        self.session.adjust_threshold(direction)
        self.logger.debug(f"Threshold now {self.session.threshold:.4f} m, "
                          f"{int(np.sum(self.session.visible))} chains visible")

    def _on_select_all(self, command: SelectAllVisible):
        self.session.select_all_visible()

    def _on_clear(self, command: ClearSelection):
        self.session.clear_selection()

    def _on_confirm(self, command: Confirm) -> SelectionConfirmed:
        chains = self.session.selected_chains()
        self.state = SessionState.CONFIRMED
        self._deactivate()
        self.logger.info(f"Rail selection confirmed: {len(chains)} chains")
        return SelectionConfirmed(chains=chains)

    def _on_cancel(self, command: Cancel) -> SelectionCancelled:
        self.state = SessionState.CANCELLED
        self._deactivate()
        self.logger.info("Rail selection cancelled")
        return SelectionCancelled()
