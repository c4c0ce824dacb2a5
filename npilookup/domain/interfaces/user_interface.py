"""Interface for presenting lookup results to the user.

Defines the contract for displaying providers, batch outcomes, errors,
warnings and informational messages, allowing different UI implementations
(e.g., rich console, plain text, JSON).
"""

import abc
from typing import Any, List

# Import relevant domain models
from npilookup.domain.models.provider import Provider


class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_provider(self, provider: Provider, **kwargs: Any) -> None:
        """Displays the full detail of a single provider.

        Args:
            provider: The provider to render.
            **kwargs: Additional arguments for formatting (e.g., title).
        """
        pass

    @abc.abstractmethod
    def display_providers(self, providers: List[Provider], **kwargs: Any) -> None:
        """Displays a summary table of several providers.

        Args:
            providers: The providers to list, in display order.
            **kwargs: Additional arguments for formatting (e.g., title).
        """
        pass

    @abc.abstractmethod
    def display_batch_result(self, result: Any, **kwargs: Any) -> None:
        """Displays the outcome of a batch lookup, successes and failures.

        Args:
            result: A BatchResult from the batch fetch service.
            **kwargs: Additional arguments for formatting.
        """
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user.

        Args:
            error_message: The error message string.
            **kwargs: Additional arguments for formatting.
        """
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user.

        Args:
            warning_message: The warning message string.
            **kwargs: Additional arguments for formatting.
        """
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user.

        Args:
            info_message: The informational message string.
            **kwargs: Additional arguments for formatting.
        """
        pass
