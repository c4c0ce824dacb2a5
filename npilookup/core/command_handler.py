"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py), delegates the work to
the registry client, and renders results or errors through the UserInterface.
Each handler returns True on success so the CLI can set its exit code.
"""

import logging
from typing import List

# Core Imports
from npilookup.core.client import NpiRegistryClient

# Domain Layer Imports
from npilookup.domain.interfaces.user_interface import UserInterface
from npilookup.domain.models.errors import ErrorKind, NpiLookupError
from npilookup.domain.models.provider import SearchOptions

logger = logging.getLogger(__name__)


class CommandHandler:
    """Handles incoming commands and delegates to the registry client."""

    def __init__(self, client: NpiRegistryClient, ui: UserInterface):
        """Initializes the CommandHandler with the client and UI."""
        self.client = client
        self.ui = ui

    def _report(self, action: str, error: NpiLookupError) -> None:
        if error.kind in (ErrorKind.NOT_FOUND, ErrorKind.INPUT_VALIDATION):
            logger.info(f"{action} failed: {error}")
            self.ui.display_warning(str(error))
        else:
            logger.error(f"{action} failed ({error.kind.value}): {error}")
            self.ui.display_error(f"{action} failed: {error}")

    async def handle_lookup(self, npi: str) -> bool:
        """Handles the 'lookup' command for a single NPI."""
        logger.info(f"Handling 'lookup' command for NPI: {npi}")
        try:
            provider = await self.client.get_provider_by_npi(npi)
        except NpiLookupError as e:
            self._report("Lookup", e)
            return False
        self.ui.display_provider(provider)
        return True

    async def handle_search(self, options: SearchOptions) -> bool:
        """Handles the 'search' command."""
        logger.info(f"Handling 'search' command: {options}")
        try:
            providers = await self.client.search_providers(options)
        except NpiLookupError as e:
            self._report("Search", e)
            return False
        if not providers:
            self.ui.display_info("No providers matched the search criteria.")
            return True
        self.ui.display_providers(providers)
        return True

    async def handle_batch(self, npis: List[str]) -> bool:
        """Handles the 'batch' command; partial results are shown even on failure."""
        logger.info(f"Handling 'batch' command for {len(npis)} NPI(s)")
        try:
            result = await self.client.get_providers_by_npis(npis)
        except NpiLookupError as e:
            self._report("Batch lookup", e)
            return False
        self.ui.display_batch_result(result)
        if result.error is not None:
            self.ui.display_warning(str(result.error))
            return False
        return True
