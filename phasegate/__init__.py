"""
phasegate: human-gated phase pipeline for test automation projects.

Sequences five fixed phases (scan, critique, plan, execute, validate) over
an external codebase. Each phase stops at a checkpoint and waits for an
operator to approve or request a revision; state is persisted after every
transition so runs survive process restarts.
"""

__version__ = "0.1.0"

from phasegate.core.exceptions import PhaseGateError

__all__ = ["PhaseGateError", "__version__"]
