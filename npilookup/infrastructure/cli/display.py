import logging
from typing import Any, List, Optional

from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from npilookup.domain.interfaces.user_interface import UserInterface
from npilookup.domain.models.provider import Address, Provider

logger = logging.getLogger(__name__)


def _format_address(address: Optional[Address]) -> str:
    if address is None:
        return ""
    street = ", ".join(p for p in (address.address_1, address.address_2) if p)
    city_state = ", ".join(p for p in (address.city, address.state) if p)
    locality = " ".join(p for p in (city_state, address.postal_code) if p)
    return ", ".join(p for p in (street, locality) if p)


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None):
        """Initializes the rich Console."""
        self.console = console or Console()

    def display_provider(self, provider: Provider, **kwargs: Any) -> None:
        """Displays one provider as a two-column detail table.

        Args:
            provider: The provider to display.
            **kwargs: Additional arguments including:
                - title: Panel title (default: the provider's display name)
        """
        title = kwargs.get("title") or provider.display_name or provider.number
        logger.debug(f"display_provider called for NPI {provider.number}")

        table = Table(show_header=False, box=SIMPLE, padding=(0, 1))
        table.add_column("Field", style="bold cyan", no_wrap=True)
        table.add_column("Value", style="white")

        table.add_row("NPI", provider.number)
        table.add_row("Type", provider.enumeration_type)
        table.add_row("Name", provider.display_name)
        if provider.basic.credential:
            table.add_row("Credential", provider.basic.credential)
        if provider.basic.status:
            table.add_row("Status", provider.basic.status)
        if provider.basic.enumeration_date:
            table.add_row("Enumerated", provider.basic.enumeration_date)
        if provider.last_updated:
            table.add_row("Last updated", provider.last_updated)

        for address in provider.addresses:
            label = f"{address.address_purpose.title() or 'Address'} address"
            table.add_row(label, _format_address(address))
            if address.telephone_number:
                table.add_row("Phone", address.telephone_number)

        for taxonomy in provider.taxonomies:
            marker = " (primary)" if taxonomy.primary else ""
            table.add_row("Taxonomy", f"{taxonomy.code} {taxonomy.desc}{marker}".strip())

        for identifier in provider.identifiers:
            table.add_row("Identifier", f"{identifier.desc}: {identifier.identifier} {identifier.state}".strip())

        self.console.print(Panel(
            table,
            title=f"[bold white]{title}[/bold white]",
            title_align="left",
            border_style="blue",
            box=ROUNDED,
            padding=(0, 1),
        ))

    def display_providers(self, providers: List[Provider], **kwargs: Any) -> None:
        """Displays a summary row per provider.

        Args:
            providers: Providers to list.
            **kwargs: Additional arguments including:
                - title: Table title (default: "N provider(s) found")
        """
        title = kwargs.get("title") or f"{len(providers)} provider(s) found"
        table = Table(title=title, show_header=True, box=ROUNDED, border_style="cyan", padding=(0, 1))
        table.add_column("#", style="cyan", justify="right")
        table.add_column("NPI", style="bold", no_wrap=True)
        table.add_column("Name", style="white")
        table.add_column("Type", style="dim")
        table.add_column("Primary taxonomy", style="white")
        table.add_column("Location", style="white")

        for i, provider in enumerate(providers, 1):
            taxonomy = provider.primary_taxonomy
            table.add_row(
                str(i),
                provider.number,
                provider.display_name,
                provider.enumeration_type,
                taxonomy.desc if taxonomy else "",
                _format_address(provider.location_address),
            )
        self.console.print(table)

    def display_batch_result(self, result: Any, **kwargs: Any) -> None:
        """Displays fetched providers followed by a failure table.

        Args:
            result: A BatchResult (succeeded mapping, failures list, total).
        """
        succeeded = list(result.succeeded.values())
        self.display_providers(
            succeeded,
            title=f"{len(succeeded)} of {result.total} provider(s) fetched",
        )
        if not result.failures:
            return

        table = Table(
            title=f"{len(result.failures)} of {result.total} failed",
            show_header=True,
            box=HEAVY,
            border_style="red",
            padding=(0, 1),
        )
        table.add_column("NPI", style="bold")
        table.add_column("Kind", style="yellow")
        table.add_column("Error", style="white")
        for npi, error in result.failures:
            table.add_row(str(npi), error.kind.value, str(error))
        self.console.print(table)

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message in a distinct style.

        Args:
            error_message: The error message to display.
        """
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message with enhanced styling.

        Args:
            info_message: The informational message to display.
        """
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message with enhanced styling.

        Args:
            warning_message: The warning message to display.
        """
        logger.warning(f"Display warning: {warning_message}")
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)
