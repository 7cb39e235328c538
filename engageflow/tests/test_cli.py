import json
from pathlib import Path

from typer.testing import CliRunner

from engageflow.cli import app
from engageflow.csv_export import CSV_HEADERS
from engageflow.sandbox_fs import read_runs


def _init(runner: CliRunner, tmp_path: Path) -> Path:
    root = tmp_path / "ws"
    res = runner.invoke(app, ["init-workspace", "--root", str(root)])
    assert res.exit_code == 0
    assert (root / "inputs" / "records.json").exists()
    return root


def _flows(path: Path) -> list:
    return json.loads(path.read_text(encoding="utf-8"))["deliveryFlows"]


def test_cli_end_to_end(tmp_path: Path):
    runner = CliRunner()
    root = _init(runner, tmp_path)

    res = runner.invoke(app, ["compile", "--root", str(root)])
    assert res.exit_code == 0
    paths = [Path(line) for line in res.stdout.strip().splitlines()]
    assert [p.name for p in paths] == ["NurseCalls.json", "Clinicals.json", "Orders.json"]
    assert all(p.exists() for p in paths)
    assert len(_flows(paths[0])) == 1
    assert len(_flows(paths[1])) == 2
    assert len(_flows(paths[2])) == 1

    runs = read_runs(root)
    assert len(runs) == 1
    assert runs[0]["reclassified"] == 1
    assert runs[0]["flows"] == 4

    res2 = runner.invoke(app, ["export-csv", "--root", str(root), "--out", "exports/flows.csv"])
    assert res2.exit_code == 0
    csv_path = Path(res2.stdout.strip())
    lines = csv_path.read_text(encoding="utf-8").splitlines()
    assert lines[0] == ",".join(CSV_HEADERS)
    assert len(lines) == 5

    res3 = runner.invoke(app, ["render-callflow", "--root", str(root), "--out", "diagrams/bed_exit.dot"])
    assert res3.exit_code == 0
    source = Path(res3.stdout.strip()).read_text(encoding="utf-8")
    assert "Bed Exit / Toilet Finished" in source
    assert "Priority: urgent" in source


def test_compile_with_settings_and_no_merge(tmp_path: Path):
    runner = CliRunner()
    root = _init(runner, tmp_path)
    res = runner.invoke(
        app,
        ["compile", "--root", str(root), "--settings", "inputs/settings.json", "--merge-mode", "NONE"],
    )
    assert res.exit_code == 0
    nurse = Path(res.stdout.strip().splitlines()[0])
    assert len(_flows(nurse)) == 2
    clinicals = _flows(Path(res.stdout.strip().splitlines()[1]))
    assert any("SpO2 Desat |" in f["name"] for f in clinicals)


def test_compile_rejects_bad_input(tmp_path: Path):
    runner = CliRunner()
    root = _init(runner, tmp_path)
    res = runner.invoke(app, ["compile", "--root", str(root), "--merge-mode", "SOMETIMES"])
    assert res.exit_code == 1
    res2 = runner.invoke(app, ["compile", "--root", str(root), "--records", "inputs/missing.json"])
    assert res2.exit_code == 1
    res3 = runner.invoke(app, ["compile", "--root", str(root), "--records", "../outside.json"])
    assert res3.exit_code == 1


def test_render_callflow_index_out_of_range(tmp_path: Path):
    runner = CliRunner()
    root = _init(runner, tmp_path)
    assert runner.invoke(app, ["compile", "--root", str(root)]).exit_code == 0
    res = runner.invoke(app, ["render-callflow", "--root", str(root), "--category", "Orders", "--index", "3"])
    assert res.exit_code == 1


def test_check_recipients():
    runner = CliRunner()
    ok = runner.invoke(app, ["check-recipients", "--text", "VAssign: [Room] RN", "--role", "RN"])
    assert ok.exit_code == 0
    report = json.loads(ok.stdout)
    assert report["destinations"][0]["name"] == "RN"
    assert report["destinations"][0]["valid"] is True

    bad = runner.invoke(app, ["check-recipients", "--text", "VAssign: Janitor", "--role", "RN"])
    assert bad.exit_code == 1


def test_check_recipients_device():
    runner = CliRunner()
    res = runner.invoke(app, ["check-recipients", "--text", "g-code_blue1", "--device", "Vocera VCS"])
    assert res.exit_code == 0
    report = json.loads(res.stdout)
    assert report["device_valid"] is True
    assert report["interfaces"] == ["VMP"]
