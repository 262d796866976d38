#!/usr/bin/env python
"""
Test script for interactive rail classification
"""

import sys
import logging
from pathlib import Path

import numpy as np
import pytest

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from src.models.edge_mapping import Chain
from src.models.rail_selection import (
    Activate,
    Cancel,
    ClearSelection,
    Confirm,
    RailClassifier,
    RailSession,
    SelectionCancelled,
    SelectionConfirmed,
    SessionState,
    command_for_key,
)


DOWN = (0.0, 0.0, -1.0)


def bar(length: float, y: float = 0.0, z: float = 0.0) -> Chain:
    """Straight open chain along x"""
    return Chain(points=np.array([[0.0, y, z], [length, y, z]]), closed=False)


def create_truss_chains():
    """Three 10 m rails and two 2 m braces, one per y row"""
    return [bar(10, y=0), bar(10, y=1), bar(10, y=2), bar(2, y=3), bar(2, y=4)]


def pick(y: float, x: float = 1.0):
    """Ray shot straight down onto row y"""
    return (x, y, 5.0), DOWN


def test_auto_threshold_selects_main_rails():
    classifier = RailClassifier()
    classifier.activate(create_truss_chains())
    session = classifier.session

    assert classifier.state is SessionState.ACTIVE
    assert session.threshold == pytest.approx(5.0)
    assert session.selected == {0, 1, 2}
    assert session.visible.tolist() == [True, True, True, False, False]


def test_closed_chain_length():
    triangle = Chain(points=np.array([[0, 0, 0], [1, 0, 0], [1, 1, 0]], dtype=float), closed=True)
    session = RailSession([triangle])

    assert session.lengths[0] == pytest.approx(2 + np.sqrt(2))


def test_single_chain_has_zero_threshold():
    session = RailSession([bar(3)])

    assert session.threshold == 0.0
    assert session.selected == {0}
    assert session.visible.tolist() == [True]


def test_empty_chain_list():
    classifier = RailClassifier()
    classifier.activate([])

    assert classifier.session.selected == set()
    assert classifier.session.visible.size == 0

    classifier.raise_threshold()
    classifier.lower_threshold()
    assert classifier.session.threshold == 0.0

    event = classifier.confirm()
    assert isinstance(event, SelectionConfirmed)
    assert event.chains == ()


def test_threshold_adjustment_and_clamping():
    classifier = RailClassifier()
    classifier.activate(create_truss_chains())
    session = classifier.session

    classifier.raise_threshold()
    assert session.threshold == pytest.approx(5.5)
    assert session.selected == {0, 1, 2}

    for _ in range(8):
        classifier.lower_threshold()
    assert session.threshold == pytest.approx(1.5)
    # Braces reappear but stay deselected
    assert session.visible.all()
    assert session.selected == {0, 1, 2}

    for _ in range(10):
        classifier.lower_threshold()
    assert session.threshold == 0.0

    for _ in range(21):
        classifier.raise_threshold()
    assert not session.visible.any()
    assert session.selected == set()


def test_hidden_hovered_chain_clears_hover():
    classifier = RailClassifier()
    classifier.activate([bar(10, y=0), bar(6, y=1)])
    session = classifier.session

    classifier.hover_at(*pick(y=1))
    assert session.hovered == 1

    for _ in range(3):
        classifier.raise_threshold()

    assert session.threshold == pytest.approx(6.5)
    assert not session.visible[1]
    assert session.hovered is None
    assert 1 not in session.selected


def test_hover_and_click_ignore_hidden_chains():
    classifier = RailClassifier()
    classifier.activate(create_truss_chains())
    session = classifier.session

    classifier.hover_at(*pick(y=3))
    assert session.hovered is None

    classifier.click_at(*pick(y=3))
    assert session.selected == {0, 1, 2}

    classifier.hover_at(*pick(y=1))
    assert session.hovered == 1

    classifier.hover_at(*pick(y=0.5))
    assert session.hovered is None


def test_click_toggles_selection():
    classifier = RailClassifier()
    classifier.activate(create_truss_chains())
    session = classifier.session

    classifier.click_at(*pick(y=0))
    assert session.selected == {1, 2}
    assert session.visible[0]

    classifier.click_at(*pick(y=0))
    assert session.selected == {0, 1, 2}


def test_nearest_chain_along_ray_wins():
    classifier = RailClassifier()
    classifier.activate([bar(4, z=0.0), bar(4, z=1.0)])

    classifier.hover_at((1.0, 0.0, 5.0), DOWN)
    assert classifier.session.hovered == 1

    classifier.hover_at((1.0, 0.0, -5.0), (0.0, 0.0, 1.0))
    assert classifier.session.hovered == 0


def test_bulk_selection_commands():
    classifier = RailClassifier()
    classifier.activate(create_truss_chains())
    session = classifier.session

    classifier.clear_selection()
    assert session.selected == set()

    classifier.select_all_visible()
    assert session.selected == {0, 1, 2}

    classifier.lower_threshold()
    for _ in range(7):
        classifier.lower_threshold()
    classifier.select_all_visible()
    assert session.selected == {0, 1, 2, 3, 4}


def test_confirm_emits_selection_once():
    chains = create_truss_chains()
    classifier = RailClassifier()
    classifier.activate(chains)
    classifier.click_at(*pick(y=1))

    event = classifier.confirm()

    assert isinstance(event, SelectionConfirmed)
    assert [id(c) for c in event.chains] == [id(chains[0]), id(chains[2])]
    assert classifier.state is SessionState.CONFIRMED
    assert classifier.session is None
    assert classifier.deactivation_count == 1

    assert classifier.confirm() is None
    assert classifier.cancel() is None
    assert classifier.deactivation_count == 1


def test_cancel_discards_session():
    classifier = RailClassifier()
    classifier.activate(create_truss_chains())

    event = classifier.handle(Cancel())

    assert isinstance(event, SelectionCancelled)
    assert classifier.state is SessionState.CANCELLED
    assert classifier.session is None
    assert classifier.deactivation_count == 1
    assert classifier.handle(Confirm()) is None


def test_session_release_clears_state():
    classifier = RailClassifier()
    classifier.activate(create_truss_chains())
    session = classifier.session
    classifier.hover_at(*pick(y=0))

    classifier.confirm()

    assert session.selected == set()
    assert session.hovered is None
    assert session.lengths.size == 0
    assert session.chains == ()


def test_reactivation_deactivates_previous_session():
    classifier = RailClassifier()
    classifier.activate(create_truss_chains())
    first = classifier.session

    classifier.handle(Activate(tuple([bar(1.0)])))

    assert classifier.deactivation_count == 1
    assert classifier.session is not first
    assert first.selected == set()
    assert len(classifier.session.chains) == 1

    classifier.reset()
    assert classifier.state is SessionState.IDLE
    assert classifier.deactivation_count == 2
    classifier.reset()
    assert classifier.deactivation_count == 2


def test_commands_ignored_while_idle():
    classifier = RailClassifier()

    assert classifier.handle(ClearSelection()) is None
    assert classifier.raise_threshold() is None
    assert classifier.confirm() is None
    assert classifier.state is SessionState.IDLE
    assert classifier.deactivation_count == 0


def test_unknown_command_raises():
    with pytest.raises(TypeError):
        RailClassifier().handle("Enter")


def test_key_bindings():
    assert isinstance(command_for_key('Enter'), Confirm)
    assert isinstance(command_for_key('Escape'), Cancel)
    assert isinstance(command_for_key('N'), ClearSelection)
    assert command_for_key('x') is None

    classifier = RailClassifier()
    classifier.activate(create_truss_chains())
    classifier.handle(command_for_key(']'))
    assert classifier.session.threshold == pytest.approx(5.5)
    assert isinstance(classifier.handle(command_for_key('Enter')), SelectionConfirmed)


def test_presentation_state():
    classifier = RailClassifier()
    classifier.activate(create_truss_chains())
    classifier.hover_at(*pick(y=2))
    session = classifier.session

    views = session.chain_views()
    assert [v.visible for v in views] == [True, True, True, False, False]
    assert [v.selected for v in views] == [True, True, True, False, False]
    assert [v.hovered for v in views] == [False, False, True, False, False]
    assert views[3].length == pytest.approx(2.0)

    assert session.status_text().startswith("Edge Pick: 3 main tubes selected (2 cross-braces hidden)")

    classifier.clear_selection()
    classifier.click_at(*pick(y=0))
    assert session.status_text().startswith("Edge Pick: 1 main tube selected")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    sys.exit(pytest.main([__file__, "-v"]))
