# SPDX-License-Identifier: MIT
# src/signal_alerts/errors.py
"""
Error taxonomy for the alert pipeline.

Each class maps to one outcome of a trigger request:
- ClientInputError: malformed trigger shape (HTTP 400)
- DataShapeError: record missing required fields (HTTP 200, not processed)
- DependencyError: subscriber store or relay failure (reported, not escalated)
- InternalFault: anything unexpected (HTTP 500)
"""
from __future__ import annotations

from typing import Any, Dict


class AlertPipelineError(Exception):
    """Base class for all pipeline errors."""

    status_code = 500

    def to_body(self) -> Dict[str, Any]:
        """Response body reported for this error."""
        return {"success": False, "processed": False, "error": str(self)}


class ClientInputError(AlertPipelineError):
    status_code = 400

    def to_body(self) -> Dict[str, Any]:
        return {"success": False, "error": str(self)}


class DataShapeError(AlertPipelineError):
    status_code = 200


class DependencyError(AlertPipelineError):
    status_code = 200


class InternalFault(AlertPipelineError):
    """Wraps an unexpected exception; the detail stays in the logs."""

    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
