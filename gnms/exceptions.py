# -*- coding: utf-8 -*-
"""Error taxonomy.

Setup errors (``ConfigurationError``, a diverging initial-guess rollout) are
raised to the caller. The numerical failures raised inside an iteration are
caught by the solver, which reports the iteration as failed and keeps the last
good nominal trajectory.
"""

from __future__ import annotations

import logging
from typing import Optional

logger = logging.getLogger(__name__)


class GNMSError(Exception):
    """Base class for all solver errors.

    Args:
        message: what went wrong
        context: optional extra context (e.g. which phase raised)
    """

    def __init__(self, message: str, context: Optional[str] = None) -> None:
        self.message = message
        self.context = context

        logger.debug("GNMS exception: %s", self._format_message())
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.context:
            return f"{self.message} (Context: {self.context})"
        return self.message


class ConfigurationError(GNMSError):
    """Invalid settings, problem definition or initial guess."""


class _StepError(GNMSError):
    """Numerical failure tied to one time step."""

    def __init__(self, message: str, step: Optional[int] = None, context: Optional[str] = None) -> None:
        self.step = step
        if step is not None:
            message = f"{message} at step {step}"
        super().__init__(message, context)


class LinearizationFailure(_StepError):
    """Singular or ill-conditioned matrix in the discrete-time conversion."""


class BackwardPassFailure(_StepError):
    """Control Hessian not positive definite after regularization."""


class RolloutDivergence(_StepError):
    """Nonlinear simulation produced a non-finite (or exploding) state."""
