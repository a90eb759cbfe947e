from typing import Any
from abc import ABC, abstractmethod

from gatepass.core.exceptions import AppError
from gatepass.core.interfaces import WorkflowBackend
from gatepass.utils.logging import get_logger

LOGGER = get_logger(__name__)


class BaseService(ABC):
    """Base class for gate-pass mutation services.

    Provides a standardized execution flow: local validation runs first, so a
    ValidationError is raised before any backend call is made.
    """

    def __init__(self, backend: WorkflowBackend):
        """Initialize the service.

        Args:
            backend: Workflow backend the mutation is sent to
        """
        self.backend = backend
        self.logger = LOGGER

    async def execute(self, *args, **kwargs) -> Any:
        """Execute the service logic.

        Args:
            *args: Positional arguments for the service
            **kwargs: Keyword arguments for the service

        Returns:
            Result of the service execution

        Raises:
            AppError: Typed failures (validation, stale write, transport)
                propagate unchanged; anything else is wrapped
        """
        try:
            self.validate(*args, **kwargs)

            return await self.run(*args, **kwargs)

        except AppError:
            raise

        except Exception as e:
            self.logger.error(
                f"Service execution failed: {str(e)}",
                exc_info=True,
                extra={"service": self.__class__.__name__},
            )
            raise AppError(f"Service execution failed: {str(e)}", original_error=e)

    def validate(self, *args, **kwargs) -> None:
        """Validate service input.

        Raises:
            ValidationError: If input is invalid
            StaleWriteConflictError: If the local record is already past the
                precondition of the mutation
        """
        pass

    @abstractmethod
    async def run(self, *args, **kwargs) -> Any:
        """Run the core service logic."""
        pass
