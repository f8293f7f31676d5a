"""Tests for processor failure grouping and the report CLI."""

import json

import pytest

import processor_diagnostics
from factories import make_payload, make_record
from models import MISSING
from processor_diagnostics import analyze_processor_failures, main, write_report


def _failure(report, name):
    return next(pf for pf in report.processor_failures if pf.processor == name)


def test_every_processor_listed_even_without_failures(registry) -> None:
    report = analyze_processor_failures([make_record()], registry)

    assert report.total_records == 1
    assert sorted(pf.processor for pf in report.processor_failures) == sorted(registry.names)
    assert all(pf.failed_count == 0 for pf in report.processor_failures)


def test_identical_bad_values_share_an_entry() -> None:
    records = [
        make_record("A", battery=None),
        make_record("B", battery=None),
        make_record("C", battery="5000 mAh"),
    ]
    report = analyze_processor_failures(records)

    battery = _failure(report, "battery_endurance")
    assert battery.failed_count == 3
    values = {json.dumps(e.value): e.document_ids for e in battery.failed_values}
    assert values[json.dumps({"capacity_value": MISSING})] == ["a", "b"]
    assert values[json.dumps({"capacity_value": "5000 mAh"})] == ["c"]


def test_benchmark_failures_group_by_chipset() -> None:
    records = [
        make_record("A", cpu="N/A", chipset="Dimensity 7300"),
        make_record("B", cpu=None, chipset="Dimensity 7300"),
        make_record("C", cpu=None, chipset=None),
    ]
    report = analyze_processor_failures(records)

    cpu = _failure(report, "cpu_performance")
    assert cpu.failed_count == 3
    by_chipset = {e.value["chipset"]: e for e in cpu.failed_values}
    assert by_chipset["Dimensity 7300"].document_ids == ["a", "b"]
    assert by_chipset["Dimensity 7300"].value["cpu_score"] == "N/A"
    assert by_chipset[MISSING].document_ids == ["c"]


def test_failures_sorted_by_count() -> None:
    records = [
        make_record("A", rear_cameras=[], ram=None),
        make_record("B", rear_cameras=[]),
        make_record("C", rear_cameras=[]),
    ]
    report = analyze_processor_failures(records)

    counts = [pf.failed_count for pf in report.processor_failures]
    assert counts == sorted(counts, reverse=True)
    assert report.processor_failures[0].processor == "camera_quality"
    assert report.processor_failures[0].failed_values[0].value["rear_camera"] == "EMPTY_ARRAY"


def test_write_report_numbers_files(tmp_path) -> None:
    report = analyze_processor_failures([make_record()])
    (tmp_path / "processor-failures-3.json").write_text("{}", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("", encoding="utf-8")

    path = write_report(report, tmp_path)

    assert path.name == "processor-failures-4.json"
    assert json.loads(path.read_text(encoding="utf-8"))["total_records"] == 1


def test_write_report_creates_directory(tmp_path) -> None:
    path = write_report(analyze_processor_failures([]), tmp_path / "reports")
    assert path == tmp_path / "reports" / "processor-failures-1.json"


@pytest.fixture
def quiet_logging(monkeypatch):
    monkeypatch.setattr(processor_diagnostics, "configure_logging", lambda settings: None)


def test_main_writes_report(tmp_path, quiet_logging) -> None:
    catalog = tmp_path / "deviceList.json"
    catalog.write_text(json.dumps([make_payload(), make_payload("Broken", gpu=None)]),
                       encoding="utf-8")
    out_dir = tmp_path / "out"

    assert main([str(catalog), "--out", str(out_dir)]) == 0

    report = json.loads((out_dir / "processor-failures-1.json").read_text(encoding="utf-8"))
    assert report["total_records"] == 2
    gpu = next(pf for pf in report["processor_failures"] if pf["processor"] == "gpu_performance")
    assert gpu["failed_count"] == 1


def test_main_reports_unreadable_catalog(tmp_path, quiet_logging) -> None:
    assert main([str(tmp_path / "missing.json"), "--out", str(tmp_path)]) == 1
    assert not list(tmp_path.glob("processor-failures-*.json"))


def test_oversized_integer_is_reported_as_failure() -> None:
    report = analyze_processor_failures([make_record("Huge", main_mp=10**400)])

    camera = _failure(report, "camera_quality")
    assert camera.failed_count == 1
    assert camera.failed_values[0].document_ids == ["huge"]
