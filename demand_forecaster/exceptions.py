"""
Exceptions raised by the demand forecaster.

Missing or thin history is never an exception: every component degrades to a
neutral default and the result carries ``data_quality = "low"``. What does
raise:

  InvalidParameterError     bad caller input, raised before any computation
  CollaboratorUnavailable   a data source or store could not be reached
  ConcurrentUpdateConflict  optimistic version check failed on a parameter write
  PredictionNotFound        feedback for an unknown prediction id
  PredictionAlreadyResolved feedback for a prediction that already has an actual
"""

from __future__ import annotations


class ForecasterError(Exception):
    """Base class for all demand forecaster errors."""


class InvalidParameterError(ForecasterError, ValueError):
    """Raised when a request fails fast validation.

    Attributes:
        field: Name of the offending argument.
    """

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"Invalid '{field}': {message}")


class CollaboratorUnavailable(ForecasterError, RuntimeError):
    """Raised when a collaborator (data source or store) cannot be reached.

    Attributes:
        collaborator: Short name of the failing collaborator.
    """

    def __init__(self, collaborator: str, detail: str) -> None:
        self.collaborator = collaborator
        super().__init__(f"{collaborator} unavailable: {detail}")


class ConcurrentUpdateConflict(ForecasterError, RuntimeError):
    """Raised when a parameter write loses an optimistic-concurrency race.

    Attributes:
        commodity_id:     Commodity whose parameters were being replaced.
        expected_version: Version the writer read before computing its update.
        actual_version:   Version found in the store at write time
                          (``None`` if the row has disappeared).
    """

    def __init__(
        self,
        commodity_id: str,
        expected_version: int,
        actual_version: int | None,
    ) -> None:
        self.commodity_id     = commodity_id
        self.expected_version = expected_version
        self.actual_version   = actual_version
        super().__init__(
            f"Parameters for '{commodity_id}' changed concurrently "
            f"(expected version {expected_version}, found {actual_version})."
        )


class PredictionNotFound(ForecasterError, LookupError):
    """Raised when a prediction id is not present in the outcome store."""

    def __init__(self, prediction_id: str) -> None:
        self.prediction_id = prediction_id
        super().__init__(f"Prediction '{prediction_id}' not found.")


class PredictionAlreadyResolved(ForecasterError, ValueError):
    """Raised on a second resolution attempt; actuals are attached exactly once."""

    def __init__(self, prediction_id: str) -> None:
        self.prediction_id = prediction_id
        super().__init__(f"Prediction '{prediction_id}' already has an actual value.")
