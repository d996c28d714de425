# SPDX-License-Identifier: Apache-2.0
# This file was created or modified with the assistance of an AI (Large Language Model).
"""Error taxonomy shared by the splice, topology and loss-budget services."""

from __future__ import annotations


class SplicebookError(Exception):
    """Base class for domain errors raised by splicebook services."""


class ValidationError(SplicebookError, ValueError):
    """Raised for out-of-range fibers, disallowed hierarchy links or missing parents."""


class NotFoundError(SplicebookError, LookupError):
    """Raised when a referenced cable, tray, port or element does not exist."""


class ConflictError(SplicebookError):
    """Raised when a record collides with an existing unique key."""
