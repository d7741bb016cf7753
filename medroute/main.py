import json
from pathlib import Path
from typing import List, Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.json import JSON
from rich.table import Table

from medroute.bootstrap import build_dispatch_service
from medroute.config import configure_logging, load_settings
from medroute.core.exceptions import MedRouteError
from medroute.core.models import AuditEventKind, AuditQuery, HospitalSnapshot
from medroute.events import InMemoryEventPublisher, deliver
from medroute.services import DispatchService

app = typer.Typer(help="MedRoute hospital routing CLI Tool")

HOSPITALS_OPTION = typer.Option(
    "data/sample_hospitals.json",
    "--hospitals",
    "-h",
    help="Path to hospital snapshot JSON file.",
    exists=True,
    file_okay=True,
    dir_okay=False,
    readable=True,
    resolve_path=True,
)
CONFIG_OPTION = typer.Option(
    None, "--config", "-c", help="Path to settings YAML file."
)


def _service(config: Optional[Path]) -> DispatchService:
    settings = load_settings(str(config) if config else None)
    configure_logging(settings)
    return build_dispatch_service(settings)


def _load_hospitals(path: Path) -> List[HospitalSnapshot]:
    try:
        with open(path, "r") as f:
            return [HospitalSnapshot(**data) for data in json.load(f)]
    except (OSError, ValueError) as e:
        rprint(f"[bold red]:x: Error loading hospital file: {e}[/bold red]")
        raise typer.Exit(code=1)


def _condition(severity: str, condition: str, specialty: Optional[str]) -> dict:
    payload = {"severity": severity, "condition": condition}
    if specialty:
        payload["required_specialty"] = specialty
    return payload


@app.command(name="recommend")
def recommend(
    hospitals_file: Path = HOSPITALS_OPTION,
    lat: float = typer.Option(..., "--lat", help="Patient latitude."),
    lon: float = typer.Option(..., "--lon", help="Patient longitude."),
    severity: str = typer.Option("moderate", "--severity", "-s", help="mild, moderate, severe or critical."),
    condition: str = typer.Option(..., "--condition", help="Condition code, e.g. stroke."),
    specialty: Optional[str] = typer.Option(None, "--specialty", help="Required specialty."),
    config: Optional[Path] = CONFIG_OPTION,
):
    """
    Select a destination hospital and print the field response.
    """
    service = _service(config)
    hospitals = _load_hospitals(hospitals_file)
    rprint(f":hospital: Loaded {len(hospitals)} hospitals from [italic]{hospitals_file}[/italic]")

    try:
        outcome = service.calculate_destination(
            hospitals,
            {"latitude": lat, "longitude": lon},
            _condition(severity, condition, specialty),
        )
    except MedRouteError as e:
        rprint(f"[bold red]:x: {e.message}[/bold red]")
        raise typer.Exit(code=1)

    console = Console()
    response = outcome.value
    table = Table(title="Destination", show_header=True, header_style="bold blue")
    table.add_column("Field", style="cyan", width=24)
    table.add_column("Value", style="magenta")
    table.add_row("Hospital ID", response.destination.hospital_id)
    table.add_row("Distance (km)", f"{response.navigation.distance_km:.1f}")
    table.add_row("ETA (min)", str(response.navigation.estimated_time_minutes))
    table.add_row("Traffic", response.navigation.traffic_condition.value)
    table.add_row("Processing (ms)", str(response.metadata.processing_time_ms))
    console.print(table)


@app.command(name="rank")
def rank(
    hospitals_file: Path = HOSPITALS_OPTION,
    lat: float = typer.Option(..., "--lat", help="Patient latitude."),
    lon: float = typer.Option(..., "--lon", help="Patient longitude."),
    severity: str = typer.Option("moderate", "--severity", "-s"),
    condition: str = typer.Option(..., "--condition"),
    specialty: Optional[str] = typer.Option(None, "--specialty"),
    config: Optional[Path] = CONFIG_OPTION,
):
    """
    Print the full internal ranking with every sub-score (supervisors only).
    """
    service = _service(config)
    hospitals = _load_hospitals(hospitals_file)
    try:
        recommendations = service.internal_recommendations(
            hospitals,
            {"latitude": lat, "longitude": lon},
            _condition(severity, condition, specialty),
        )
    except MedRouteError as e:
        rprint(f"[bold red]:x: {e.message}[/bold red]")
        raise typer.Exit(code=1)

    table = Table(title="Internal Ranking", show_header=True, header_style="bold blue")
    for column in ["#", "Hospital", "Composite", "Avail", "Spec", "Travel", "Equip", "Load", "ETA"]:
        table.add_column(column)
    for i, row in enumerate(recommendations.recommendations, start=1):
        s = row.scores
        table.add_row(
            str(i),
            f"{row.hospital_name} ({row.hospital_id})" + (" *" if row.selected else ""),
            str(s.composite_score),
            str(s.availability_score),
            str(s.specialist_score),
            str(s.travel_score),
            str(s.equipment_score),
            str(s.load_score),
            str(row.travel.duration_in_traffic_minutes),
        )
    Console().print(table)


@app.command(name="simulate-trip")
def simulate_trip(
    hospitals_file: Path = HOSPITALS_OPTION,
    trip_file: Path = typer.Option(
        "data/sample_trip.json",
        "--trip",
        "-t",
        help="Path to trip scenario JSON file.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
        resolve_path=True,
    ),
    config: Optional[Path] = CONFIG_OPTION,
):
    """
    Run a full trip: select, start, report samples, complete and verify the audit chain.
    """
    service = _service(config)
    hospitals = _load_hospitals(hospitals_file)
    for hospital in hospitals:
        service.directory.upsert(hospital)

    with open(trip_file, "r") as f:
        scenario = json.load(f)

    publisher = InMemoryEventPublisher()
    trip_id = scenario["trip_id"]
    vehicle_id = scenario["vehicle_id"]

    try:
        decision = service.calculate_destination(
            hospitals,
            scenario["patient_location"],
            scenario["patient_condition"],
            trip_id=trip_id,
            vehicle_id=vehicle_id,
        )
        deliver(decision.events, publisher)
        hospital_id = decision.value.destination.hospital_id
        rprint(f":ambulance: Trip {trip_id} routed to [bold]{hospital_id}[/bold]")

        started = service.start_trip(
            trip_id,
            vehicle_id,
            hospital_id,
            scenario["patient_location"],
            decision.value.navigation,
        )
        deliver(started.events, publisher)

        for sample in scenario.get("samples", []):
            update = service.report_location(trip_id, sample)
            deliver(update.events, publisher)
            alert = update.value.deviation_alert
            if alert:
                rprint(
                    f"  [yellow]:warning: {alert.severity.value} deviation: "
                    f"{'; '.join(alert.reasons)}[/yellow]"
                )
            else:
                rprint("  [green]:heavy_check_mark: on route[/green]")

        completed = service.complete_trip(trip_id, scenario.get("final_location"))
        deliver(completed.events, publisher)
    except MedRouteError as e:
        rprint(f"[bold red]:x: {e.message}[/bold red]")
        raise typer.Exit(code=1)

    console = Console()
    console.print("\n[bold]Final statistics:[/bold]")
    console.print(JSON(completed.value.final_stats.model_dump_json()))
    console.print(f"Outbound events: {len(publisher.published)}")

    verification = service.verify_audit_chain()
    colour = "green" if verification.is_valid else "red"
    console.print(
        f"[bold {colour}]Audit chain valid: {verification.is_valid} "
        f"({verification.total_entries} entries)[/bold {colour}]"
    )


@app.command(name="verify-audit")
def verify_audit(config: Optional[Path] = CONFIG_OPTION):
    """
    Verify the persisted audit chain.
    """
    service = _service(config)
    result = service.verify_audit_chain()
    if result.is_valid:
        rprint(f"[bold green]:heavy_check_mark: Audit chain valid ({result.total_entries} entries)[/bold green]")
        return
    rprint(
        f"[bold red]:x: Audit chain broken at index {result.failed_index} "
        f"({result.failed_entry_id}): {result.reason}[/bold red]"
    )
    raise typer.Exit(code=2)


@app.command(name="export-audit")
def export_audit(
    fmt: str = typer.Option("json", "--format", "-f", help="json or csv."),
    event_kind: Optional[AuditEventKind] = typer.Option(None, "--event", help="Filter by event kind."),
    trip_id: Optional[str] = typer.Option(None, "--trip-id", help="Filter by trip id."),
    config: Optional[Path] = CONFIG_OPTION,
):
    """
    Export audit entries as JSON or CSV.
    """
    service = _service(config)
    try:
        output = service.ledger.export(fmt, AuditQuery(event_kind=event_kind, trip_id=trip_id))
    except MedRouteError as e:
        rprint(f"[bold red]:x: {e.message}[/bold red]")
        raise typer.Exit(code=1)
    typer.echo(output)


if __name__ == "__main__":
    app()
