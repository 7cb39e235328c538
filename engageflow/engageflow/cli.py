from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

import typer

from .callflow import render_callflow, save_dot
from .csv_export import to_csv
from .devices import infer_interfaces
from .engine import compile_records, to_json
from .merge import MERGE_MODES
from .recipients import has_valid_recipient_keyword, parse_directives, segment_text
from .records_loader import load_records, load_settings, load_units
from .sandbox_fs import SandboxPathError, ensure_dirs, log_run, output_documents, resolve_in_sandbox, write_json

app = typer.Typer(add_completion=False, no_args_is_help=True)

logger = logging.getLogger(__name__)

SAMPLE_UNITS = [
    {
        "facility": "BCH",
        "unit_names": "MedSurg, 4 West",
        "nurse_group": "General PM",
        "clinical_group": "General Clinical",
        "orders_group": "General Orders",
        "no_caregiver_group": "VGroup: BCH No Caregiver",
    },
    {
        "facility": "BCH",
        "unit_names": "ICU",
        "nurse_group": "ICU Nurse",
        "clinical_group": "ICU Clinical",
    },
]

SAMPLE_RECORDS = [
    {
        "category": "NurseCalls",
        "config_group": "General PM",
        "alarm_name": "Bed Exit",
        "priority": "High",
        "device_a": "iPhone-Edge",
        "ringtone": "Tone 3",
        "response_options": "Accept, Escalate",
        "hops": [
            {"delay": "0", "recipient": "VAssign: [Room] CNA"},
            {"delay": "60", "recipient": "VAssign: Room RN"},
            {"delay": "120", "recipient": "VGroup: Charge Nurses"},
        ],
    },
    {
        "category": "NurseCalls",
        "config_group": "General PM",
        "alarm_name": "Toilet Finished",
        "priority": "High",
        "device_a": "iPhone-Edge",
        "ringtone": "Tone 3",
        "response_options": "Accept, Escalate",
        "hops": [
            {"delay": "0", "recipient": "VAssign: [Room] CNA"},
            {"delay": "60", "recipient": "VAssign: Room RN"},
            {"delay": "120", "recipient": "VGroup: Charge Nurses"},
        ],
    },
    {
        "category": "NurseCalls",
        "config_group": "General PM",
        "alarm_name": "Code Blue",
        "priority": "Urgent",
        "device_a": "Vocera VCS",
        "ringtone": "Code Tone",
        "response_options": "Accept, Decline, Call Back",
        "emdan": "Yes",
        "hops": [{"delay": "0", "recipient": "g-code_blue1"}],
    },
    {
        "category": "Clinicals",
        "config_group": "ICU Clinical",
        "alarm_name": "SpO2 Desaturation",
        "sending_name": "SPO2_LOW",
        "priority": "High(VCS)",
        "device_a": "VCS",
        "ringtone": "Global Setting",
        "response_options": "No Response",
        "hops": [{"delay": "0", "recipient": "VAssign: Room RN"}],
    },
    {
        "category": "Orders",
        "config_group": "General Orders",
        "alarm_name": "STAT Med",
        "priority": "Medium(Edge)",
        "device_a": "Edge",
        "response_options": "Acknowledge",
        "hops": [{"delay": "0", "recipient": "VAssign: Pharmacist"}],
    },
]

SAMPLE_SETTINGS = {
    "merge_mode": "MERGE_BY_CONFIG_GROUP",
    "default_edge": False,
    "default_vmp": True,
    "alert_name_transformations": {"SpO2 Desaturation": "SpO2 Desat"},
    "known_roles": ["CNA", "RN", "Pharmacist"],
    "known_groups": ["Charge Nurses"],
}


def _fail(exc: Exception) -> None:
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(code=1)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log pipeline decisions")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command("init-workspace")
def cli_init_workspace(root: str = typer.Option(".", "--root", help="Workspace directory")):
    dirs = ensure_dirs(root)
    write_json(root, "inputs/units.json", {"units": SAMPLE_UNITS})
    write_json(root, "inputs/records.json", {"records": SAMPLE_RECORDS})
    write_json(root, "inputs/settings.json", SAMPLE_SETTINGS)
    typer.echo(str(dirs["root"]))


@app.command("compile")
def cli_compile(
    root: str = typer.Option(".", "--root", help="Workspace directory"),
    records: str = typer.Option("inputs/records.json", "--records", help="Records JSON file or directory"),
    units: str = typer.Option("inputs/units.json", "--units", help="Unit mapping JSON file"),
    settings: Optional[str] = typer.Option(None, "--settings", help="Optional settings JSON file"),
    merge_mode: Optional[str] = typer.Option(None, "--merge-mode", help="NONE, MERGE_BY_CONFIG_GROUP or MERGE_ACROSS_CONFIG_GROUP"),
    default_edge: Optional[bool] = typer.Option(None, "--default-edge/--no-default-edge", help="Fallback Edge interface"),
    default_vmp: Optional[bool] = typer.Option(None, "--default-vmp/--no-default-vmp", help="Fallback VMP interface"),
    out_dir: str = typer.Option("outputs", "--out-dir", help="Output directory, relative to the workspace"),
):
    try:
        cfg = load_settings(resolve_in_sandbox(root, settings) if settings else None)
        overrides = {}
        if merge_mode is not None:
            if merge_mode not in MERGE_MODES:
                raise ValueError(f"--merge-mode must be one of {', '.join(MERGE_MODES)}")
            overrides["merge_mode"] = merge_mode
        if default_edge is not None:
            overrides["default_edge"] = default_edge
        if default_vmp is not None:
            overrides["default_vmp"] = default_vmp
        cfg = cfg.model_copy(update=overrides)
        rows = load_records(resolve_in_sandbox(root, records))
        unit_rows = load_units(resolve_in_sandbox(root, units))
    except (FileNotFoundError, ValueError) as exc:
        _fail(exc)

    result = compile_records(rows, unit_rows, cfg)
    for category, doc in result.documents.items():
        p = resolve_in_sandbox(root, Path(out_dir) / f"{category}.json")
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(to_json(doc) + "\n", encoding="utf-8")
        typer.echo(str(p))
    log_run(
        root,
        {
            "records": len(rows),
            "excluded": result.excluded,
            "reclassified": result.reclassified,
            "flows": result.flow_count(),
            "merge_mode": cfg.merge_mode,
        },
    )


@app.command("check-recipients")
def cli_check_recipients(
    text: str = typer.Option(..., "--text", help="Recipient directive text, one hop"),
    role: List[str] = typer.Option([], "--role", help="Known role name (repeatable)"),
    group: List[str] = typer.Option([], "--group", help="Known group name (repeatable)"),
    device: Optional[str] = typer.Option(None, "--device", help="Also check a device field"),
):
    """Show how a directive parses and which names are unknown."""
    dests = parse_directives(text, role, group)
    report = {
        "destinations": [d.model_dump() for d in dests],
        "segments": [[s.model_dump() for s in line] for line in segment_text(text, role, group)],
    }
    if device is not None:
        report["device_valid"] = has_valid_recipient_keyword(device)
        report["interfaces"] = [i.component_name for i in infer_interfaces(device, "", load_settings())]
    typer.echo(json.dumps(report, indent=2))
    if any(d.valid is False for d in dests):
        raise typer.Exit(code=1)


@app.command("export-csv")
def cli_export_csv(
    root: str = typer.Option(".", "--root", help="Workspace directory"),
    out: str = typer.Option("exports/flows.csv", "--out", help="CSV path, relative to the workspace"),
):
    try:
        docs = output_documents(root)
        out_path = resolve_in_sandbox(root, out)
    except (FileNotFoundError, SandboxPathError) as exc:
        _fail(exc)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    to_csv(docs, str(out_path))
    typer.echo(str(out_path))


@app.command("render-callflow")
def cli_render_callflow(
    root: str = typer.Option(".", "--root", help="Workspace directory"),
    category: str = typer.Option("NurseCalls", "--category"),
    index: int = typer.Option(0, "--index", help="Position of the flow in the category document"),
    out: str = typer.Option("diagrams/callflow.dot", "--out", help="Diagram path; .dot writes the source only"),
):
    try:
        docs = output_documents(root)
        out_path = resolve_in_sandbox(root, out)
    except (FileNotFoundError, SandboxPathError) as exc:
        _fail(exc)
    flows = docs.get(category, {}).get("deliveryFlows", [])
    if not 0 <= index < len(flows):
        _fail(ValueError(f"{category} has {len(flows)} flow(s), no index {index}"))
    out_path.parent.mkdir(parents=True, exist_ok=True)
    if out_path.suffix == ".dot":
        written = save_dot(flows[index], str(out_path))
    else:
        written = render_callflow(flows[index], str(out_path))
    typer.echo(written)


if __name__ == "__main__":
    app()
