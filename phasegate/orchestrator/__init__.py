"""Orchestration layer sequencing the five phases of a run.

This package provides the phase state machine and the mapping from
command-line invocation modes onto it.
"""

from .controller import PhaseController
from .dispatcher import CLIDispatcher, DispatchResult, build_dispatcher, create_executor

__all__ = [
    "PhaseController",
    "CLIDispatcher",
    "DispatchResult",
    "build_dispatcher",
    "create_executor",
]
