"""
Rail Selection Module

Interactive classification of traced chains into main rails and cross-braces.

Key Components:
- RailClassifier: Command-driven state machine (idle / active / confirmed / cancelled)
- RailSession: Per-session lengths, threshold, visibility, selection and hover
- Commands: Activate, HoverAt, ClickAt, RaiseThreshold, LowerThreshold,
  SelectAllVisible, ClearSelection, Confirm, Cancel
- Events: SelectionConfirmed, SelectionCancelled
"""

from .rail_classifier import (
    SessionState,
    RailClassifier,
    RailSession,
    ChainView,
    Activate,
    HoverAt,
    ClickAt,
    RaiseThreshold,
    LowerThreshold,
    SelectAllVisible,
    ClearSelection,
    Confirm,
    Cancel,
    SelectionConfirmed,
    SelectionCancelled,
    KEY_BINDINGS,
    command_for_key
)

__all__ = [
    'SessionState',
    'RailClassifier',
    'RailSession',
    'ChainView',
    'Activate',
    'HoverAt',
    'ClickAt',
    'RaiseThreshold',
    'LowerThreshold',
    'SelectAllVisible',
    'ClearSelection',
    'Confirm',
    'Cancel',
    'SelectionConfirmed',
    'SelectionCancelled',
    'KEY_BINDINGS',
    'command_for_key'
]
