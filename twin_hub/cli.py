"""
Command-line replay of recorded sensor sessions.

    twin-hub-replay session.csv --severity high

Prints one JSON line per anomaly, then a JSON statistics summary.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from typing import List, Optional

from dotenv import load_dotenv

from twin_hub.anomaly import AnomalyEngine, AnomalySeverity, AnomalyStore
from twin_hub.core.logging_config import setup_logging
from twin_hub.replay import ReplayClock, replay_samples
from twin_hub.sensors import RecordingIngestionError, ingest_recording, normalize_rows


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="twin-hub-replay",
        description="Replay a recorded sensor session through the anomaly engine.",
    )
    parser.add_argument("path", help="Recording file (CSV, JSON array, or NDJSON)")
    parser.add_argument("--format", choices=["auto", "csv", "json"], default="auto")
    parser.add_argument(
        "--severity",
        choices=[s.value for s in AnomalySeverity],
        default=None,
        help="Minimum severity to report (default: detection config)",
    )
    parser.add_argument("--log-level", default=os.getenv("LOG_LEVEL"))
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    logger = setup_logging(level=args.log_level)

    try:
        samples, skipped = normalize_rows(ingest_recording(args.path, format=args.format))
    except RecordingIngestionError as e:
        logger.error(f"Cannot replay {args.path}: {e}")
        return 1

    clock = ReplayClock()
    store = AnomalyStore(clock=clock)
    engine = AnomalyEngine(sink=store, clock=clock)
    if args.severity:
        engine.update_config(severity_threshold=AnomalySeverity(args.severity))

    events = replay_samples(engine, samples, clock=clock)
    for event in events:
        print(event.model_dump_json())

    summary = store.statistics().model_dump(mode="json")
    summary["samples"] = len(samples)
    summary["skipped_rows"] = skipped
    print(json.dumps(summary))
    return 0


if __name__ == "__main__":
    sys.exit(main())
