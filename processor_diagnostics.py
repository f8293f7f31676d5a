"""
Processor failure diagnostics.

Re-runs every category validator over a catalog and reports which raw
values make records fail, grouped so that one bad scraper mapping shows
up as a single entry with many document ids. CPU/GPU failures are grouped
by chipset instead, since benchmark gaps follow the SoC.

Usage:
    python processor_diagnostics.py [CATALOG_JSON] [--out DIR]
"""
from __future__ import annotations
import argparse
import json
import logging
import re
from pathlib import Path
from typing import Any, Optional, Sequence, Union

from category_processors import ProcessorRegistry, build_registry
from config import configure_logging, get_settings
from device_catalog import CatalogLoadError, load_records
from models import (
    MISSING, FailedValueEntry, FailureReport, ProcessorFailure, SmartPrixRecord,
)

logger = logging.getLogger(__name__)

CHIPSET_GROUPED = frozenset({'cpu_performance', 'gpu_performance'})
REPORT_PATTERN = re.compile(r'^processor-failures-(\d+)\.json$')


def _chipset(record: SmartPrixRecord) -> str:
    chipset = record.lookup('extracted', 'technical', 'chipset')
    if isinstance(chipset, str) and chipset.strip():
        return chipset.strip()
    return MISSING


def _group_key(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def analyze_processor_failures(
    records: Sequence[SmartPrixRecord],
    registry: Optional[ProcessorRegistry] = None,
) -> FailureReport:
    if registry is None:
        registry = build_registry()

    groups: dict[str, dict[str, FailedValueEntry]] = {name: {} for name in registry.names}

    for record in records:
        doc_id = record.id or record.title
        for processor in registry:
            if processor.validate_product(record):
                continue

            name = processor.category_name
            snapshot = processor.snapshot(record)
            if name in CHIPSET_GROUPED:
                chipset = _chipset(record)
                key = f"chipset_{MISSING}" if chipset == MISSING else chipset
                value: Any = {'chipset': chipset, **snapshot}
            else:
                key = _group_key(snapshot)
                value = snapshot

            entry = groups[name].get(key)
            if entry is None:
                entry = groups[name][key] = FailedValueEntry(value=value)
            if doc_id not in entry.document_ids:
                entry.document_ids.append(doc_id)

    failures = [
        ProcessorFailure(
            processor=name,
            failed_count=sum(len(e.document_ids) for e in entries.values()),
            failed_values=list(entries.values()),
        )
        for name, entries in groups.items()
    ]
    failures.sort(key=lambda f: f.failed_count, reverse=True)

    return FailureReport(total_records=len(records), processor_failures=failures)


def write_report(report: FailureReport, directory: Union[str, Path]) -> Path:
    """Write to processor-failures-<n>.json, n one past the highest existing."""
    out_dir = Path(directory)
    out_dir.mkdir(parents=True, exist_ok=True)

    highest = 0
    for f in out_dir.iterdir():
        m = REPORT_PATTERN.match(f.name)
        if m:
            highest = max(highest, int(m.group(1)))

    path = out_dir / f"processor-failures-{highest + 1}.json"
    path.write_text(report.model_dump_json(indent=2), encoding='utf-8')
    return path


def main(argv: Optional[Sequence[str]] = None) -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument('catalog', nargs='?', default=settings.catalog_path,
                        help='device list JSON (default: %(default)s)')
    parser.add_argument('--out', default='reports',
                        help='report directory (default: %(default)s)')
    args = parser.parse_args(argv)

    configure_logging(settings)

    try:
        records = load_records(args.catalog)
    except CatalogLoadError:
        logger.exception("Failed to load device list")
        return 1

    logger.info(f"Loaded {len(records)} devices")
    report = analyze_processor_failures(records)
    path = write_report(report, args.out)

    logger.info(f"Report written to: {path}")
    for pf in report.processor_failures:
        logger.info(
            f"  {pf.processor}: {pf.failed_count} failures "
            f"({len(pf.failed_values)} unique values)")
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
