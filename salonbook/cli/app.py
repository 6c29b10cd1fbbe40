"""
Main CLI application using Typer.
"""

import logging
from pathlib import Path
from typing import Annotated, List, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..adapters.calendar_link import google_calendar_link
from ..adapters.sql_store import SqlReservationStore
from ..adapters.webhook_notifier import LoggingNotifier, WebhookNotifier
from ..config import AppConfig, get_default_config_path
from ..domain.booking_gate import BookingDecision
from ..domain.exceptions import BookingError, BookingRejectedError, SlotConflictError
from ..domain.models import Reservation, ReservationStatus, parse_date
from ..services.booking_service import REASON_TOO_LATE, BookingService

app = typer.Typer(
    name="salonbook",
    help="Agenda de horários: consultar, reservar e cancelar atendimentos",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]

DECISION_LABELS = {
    BookingDecision.BOOKABLE: "[green]disponível[/green]",
    BookingDecision.REJECTED_TAKEN: "[red]ocupado[/red]",
    BookingDecision.REJECTED_TOO_SOON: "[yellow]muito próximo[/yellow]",
    BookingDecision.REJECTED_CLOSED: "[dim]fechado[/dim]",
    BookingDecision.REJECTED_INVALID_SLOT: "[dim]fora da grade[/dim]",
}

REJECTION_MESSAGES = {
    BookingDecision.REJECTED_CLOSED: "O estabelecimento não atende neste dia/horário.",
    BookingDecision.REJECTED_TAKEN: "Este horário já está reservado.",
    BookingDecision.REJECTED_TOO_SOON: "Reservas precisam de no mínimo 30 minutos de antecedência.",
    BookingDecision.REJECTED_INVALID_SLOT: "Horário fora da grade de atendimento.",
}

STATUS_STYLES = {
    ReservationStatus.CONFIRMED: "green",
    ReservationStatus.PENDING: "yellow",
    ReservationStatus.CANCELLED: "dim",
}


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
):
    """
    Salonbook - operating hours, availability and reservations per company.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config_path = config_file or get_default_config_path()
    return AppConfig.load_from_yaml(config_path)


def _build_service(config: AppConfig) -> BookingService:
    """Wire the SQL store, notifier and configured schedules together."""
    store = SqlReservationStore(config.database_url)

    if config.webhook.url:
        notifier = WebhookNotifier(url=config.webhook.url, timeout=config.webhook.timeout_seconds)
    else:
        notifier = LoggingNotifier()

    return BookingService(
        store=store,
        schedules=config.schedules(),
        services=config.service_catalogues(),
        notifier=notifier,
        clock=lambda: pendulum.now(config.timezone),
    )


def _today(config: AppConfig) -> str:
    return pendulum.now(config.timezone).format("YYYY-MM-DD")


def _fail(message: str) -> None:
    console.print(f"[bold red]Erro:[/bold red] {message}")
    raise typer.Exit(1)


@app.command()
def companies(config_file: ConfigOption = None):
    """
    List all configured companies.
    """
    try:
        config = _load_config(config_file)
    except (FileNotFoundError, ValueError) as e:
        _fail(str(e))

    if not config.companies:
        console.print("[yellow]Nenhuma empresa definida no arquivo de configuração.[/yellow]")
        return

    table = Table(title="Empresas configuradas", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="bold yellow")
    table.add_column("Nome")
    table.add_column("Ativa")
    table.add_column("Intervalo", justify="right")
    table.add_column("Serviços", justify="right")

    for company in config.companies:
        table.add_row(
            company.id,
            company.name,
            "sim" if company.active else "não",
            f"{company.schedule.slot_granularity_minutes} min",
            str(len(company.services)),
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def services(
    company: Annotated[str, typer.Argument(help="Company id")],
    config_file: ConfigOption = None,
):
    """
    List the services a company offers.
    """
    try:
        config = _load_config(config_file)
    except (FileNotFoundError, ValueError) as e:
        _fail(str(e))

    company_config = config.find_company(company)
    if company_config is None:
        _fail(f"Empresa desconhecida: {company}")

    table = Table(title=f"Serviços - {company_config.name}", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="bold yellow")
    table.add_column("Serviço")
    table.add_column("Duração", justify="right")
    table.add_column("Valor", justify="right")

    for service in company_config.services:
        domain_service = service.to_service()
        table.add_row(
            service.id,
            service.name,
            f"{service.duration_minutes} min",
            domain_service.format_price(),
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def slots(
    company: Annotated[str, typer.Argument(help="Company id")],
    date: Annotated[Optional[str], typer.Option("--date", "-d", help="Date (YYYY-MM-DD), defaults to today")] = None,
    show_all: Annotated[bool, typer.Option("--all", help="Also show unavailable slots with the reason.")] = False,
    config_file: ConfigOption = None,
):
    """
    Show the bookable slots of a company for one date.

    Examples:

        salonbook slots barbearia-centro
        salonbook slots barbearia-centro --date 2024-05-06 --all
    """
    try:
        config = _load_config(config_file)
        service = _build_service(config)
        day = date or _today(config)

        if show_all:
            options = service.slot_options(company, day)
            if not options:
                console.print(f"[yellow]⚠ Fechado em {day}.[/yellow]")
                return

            table = Table(title=f"Horários {day}", show_header=True, header_style="bold cyan")
            table.add_column("Horário", style="bold")
            table.add_column("Situação")
            for option in options:
                table.add_row(option.time, DECISION_LABELS[option.decision])

            console.print()
            console.print(table)
            console.print()
            return

        available = service.available_slots(company, day)

    except (FileNotFoundError, ValueError, BookingError) as e:
        _fail(str(e))

    if not available:
        console.print(f"[yellow]⚠ Nenhum horário disponível em {day}.[/yellow]")
        return

    console.print(f"[bold green]✓ {len(available)} horário(s) disponível(is) em {day}:[/bold green]\n")
    console.print("  " + "  ".join(available))
    console.print()


@app.command()
def book(
    company: Annotated[str, typer.Argument(help="Company id")],
    time: Annotated[str, typer.Argument(help="Slot start (HH:MM)")],
    date: Annotated[str, typer.Option("--date", "-d", help="Date (YYYY-MM-DD)")],
    client: Annotated[str, typer.Option("--client", help="Client id (e.g. WhatsApp number)")],
    service_id: Annotated[str, typer.Option("--service", "-s", help="Service id")],
    config_file: ConfigOption = None,
):
    """
    Reserve a slot for a client.
    """
    try:
        config = _load_config(config_file)
        service = _build_service(config)
        reservation = service.book(
            company_id=company,
            client_id=client,
            service_id=service_id,
            day=date,
            time=time,
        )

    except BookingRejectedError as e:
        _fail(REJECTION_MESSAGES.get(e.decision, str(e)))

    except SlotConflictError:
        console.print("[bold red]Erro:[/bold red] Este horário acabou de ser reservado por outra pessoa.")
        available = service.available_slots(company, date)
        if available:
            console.print("Horários ainda disponíveis: " + "  ".join(available))
        raise typer.Exit(1)

    except (FileNotFoundError, ValueError, BookingError) as e:
        _fail(str(e))

    console.print("[bold green]🎉 Agendamento confirmado![/bold green]")
    console.print(f"   Data: {reservation.date.isoformat()}  Horário: {reservation.time}")
    console.print(f"   Código: [bold]{reservation.id}[/bold]")

    company_config = config.find_company(company)
    service_config = company_config.find_service(service_id) if company_config else None
    if service_config is not None:
        link = google_calendar_link(
            reservation,
            service_config.to_service(),
            pendulum.now(config.timezone),
            company_name=company_config.name,
            location=company_config.address,
        )
        console.print("\n📅 Salvar na agenda:")
        console.print(link, soft_wrap=True, markup=False)


@app.command()
def cancel(
    reservation_id: Annotated[str, typer.Argument(help="Reservation id")],
    config_file: ConfigOption = None,
):
    """
    Cancel a reservation (at least 2 hours in advance).
    """
    try:
        config = _load_config(config_file)
        service = _build_service(config)
        result = service.cancel(reservation_id)
    except (FileNotFoundError, ValueError, BookingError) as e:
        _fail(str(e))

    if result.cancelled:
        console.print("[green]✓ Agendamento cancelado.[/green]")
        return

    if result.reason == REASON_TOO_LATE:
        _fail("Cancelamentos são permitidos com no mínimo 2h de antecedência.")
    _fail("Este agendamento não está confirmado.")


@app.command()
def reservations(
    company: Annotated[str, typer.Argument(help="Company id")],
    date: Annotated[Optional[str], typer.Option("--date", "-d", help="Only this date (YYYY-MM-DD)")] = None,
    client: Annotated[
        Optional[str],
        typer.Option("--client", help="Only this client, split into upcoming and history"),
    ] = None,
    config_file: ConfigOption = None,
):
    """
    List reservations of a company, including cancelled history.

    With --client the list is the client's agenda: upcoming appointments
    first, then past and cancelled ones.
    """
    try:
        config = _load_config(config_file)
        day = parse_date(date) if date else None

        if client:
            agenda = _build_service(config).client_reservations(company, client)
            groups = [("Próximos agendamentos", agenda.upcoming), ("Histórico", agenda.history)]
        else:
            store = SqlReservationStore(config.database_url)
            groups = [(f"Agendamentos - {company}", store.list_reservations(company, day))]
    except (FileNotFoundError, ValueError, BookingError) as e:
        _fail(str(e))

    if day is not None:
        groups = [(title, [r for r in rows if r.date == day]) for title, rows in groups]

    if not any(rows for _, rows in groups):
        console.print("[yellow]Nenhum agendamento encontrado.[/yellow]")
        return

    console.print()
    for title, rows in groups:
        if rows:
            console.print(_reservation_table(title, rows))
            console.print()


def _reservation_table(title: str, rows: List[Reservation]) -> Table:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Código", style="dim")
    table.add_column("Data")
    table.add_column("Horário")
    table.add_column("Cliente")
    table.add_column("Serviço")
    table.add_column("Status")

    for reservation in rows:
        style = STATUS_STYLES[reservation.status]
        table.add_row(
            reservation.id,
            reservation.date.isoformat(),
            reservation.time,
            reservation.client_id,
            reservation.service_id,
            f"[{style}]{reservation.status.value}[/{style}]",
        )

    return table


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]salonbook[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
