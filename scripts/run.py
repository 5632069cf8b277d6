# scripts/run.py
from __future__ import annotations

import argparse
import logging
import sys
import time
import traceback
from pathlib import Path
from typing import Any

from rosterguard.dataloader.config_loader import ConfigLoader
from rosterguard.dataloader.dataset_loader import DatasetLoader
from rosterguard.dataloader.postload_handler import LoadResultHandler
from rosterguard.errors import ConfigError, DataError, RosterGuardError
from rosterguard.export.result_export import (
    write_result_json,
    write_text_report,
    write_violations_csv,
)
from rosterguard.report import log_validation_result
from rosterguard.validator import validate_generated_schedule

TEXT_REPORT_FILENAME = "validation_report.txt"
VIOLATIONS_CSV_FILENAME = "violations.csv"


def _setup_logging(level: str = "INFO") -> None:
    """
    @brief
    Initializes global logging configuration.

    @details
    Uses a simple console format shared by every pipeline stage. The level
    is raised or lowered again once config.yaml has been read.
    """
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    @brief
    Parses command-line arguments for the validation pipeline.

    @details
    --input and --output fall back to dataset_path / output_dir from the
    configuration file when omitted.
    """
    parser = argparse.ArgumentParser(
        prog="rosterguard-run",
        description="Validate a generated broker schedule: load → validate → report → export",
    )
    parser.add_argument(
        "--config",
        type=str,
        default="config/config.yaml",
        help="Path to config YAML (default: config/config.yaml)",
    )
    parser.add_argument(
        "--input",
        type=str,
        default=None,
        help="Path to the dataset JSON (default: dataset_path from config)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Output directory for artifacts (default: output_dir from config)",
    )
    return parser.parse_args(argv)


def run_pipeline(
    config_path: Path, input_path: Path | None = None, output_dir: Path | None = None
) -> dict[str, Any]:
    """
    @brief
    Executes the full validation pipeline.

    @details
    Performs sequential steps:
    (1) Load configuration and the dataset bundle.
    (2) Validate the schedule (pure, nothing written).
    (3) Log the rendered text report.
    (4) Write the enabled artifacts and return a summary.

    @returns
        Dictionary with the validity flag (honoring fail_on_warnings),
        error/warning counts, runtime and artifact paths.

    @raises
        RosterGuardError
            On configuration, data or persistence issues.
    """
    t0 = time.perf_counter()

    # (1) Configuration
    logging.info("Loading config: %s", config_path)
    cfg = ConfigLoader().load(config_path)
    logging.getLogger().setLevel(cfg.log_level)

    if input_path is None:
        if not cfg.dataset_path:
            raise ConfigError(
                message="No dataset given: pass --input or set dataset_path in config.yaml.",
                source="scripts.run",
                suggested_action="Point dataset_path at a JSON dataset bundle.",
            )
        input_path = Path(cfg.dataset_path)
    if output_dir is None:
        output_dir = Path(cfg.output_dir or "data/output")
    output_dir.mkdir(parents=True, exist_ok=True)

    # (2) Dataset
    logging.info("Loading dataset: %s", input_path)
    load_result = DatasetLoader().load(input_path)
    data = LoadResultHandler(output_dir=output_dir).handle(load_result)
    if data is None:
        load_errors_path = output_dir / LoadResultHandler.ERRORS_FILENAME
        raise DataError(
            message=f"Dataset load failed, see {load_errors_path.as_posix()}",
            source="scripts.run",
            suggested_action="Fix the records listed in load_errors.json and rerun.",
        )

    # (3) Validation
    logging.info("Validating %d assignment(s)…", len(data.assignments))
    result = validate_generated_schedule(
        data.assignments,
        data.brokers,
        data.locations,
        unallocated_demands=data.unallocated_demands,
        location_broker_configs=data.location_broker_configs,
    )
    text = log_validation_result(result)

    # (4) Artifacts
    vcfg = cfg.validation
    artifacts: dict[str, Path | None] = {
        "validation_report": None,
        "text_report": None,
        "violations_csv": None,
    }
    if vcfg.write_report:
        artifacts["validation_report"] = write_result_json(
            result, output_dir / vcfg.report_filename
        )
    if vcfg.write_text_report:
        artifacts["text_report"] = write_text_report(text, output_dir / TEXT_REPORT_FILENAME)
    if vcfg.write_violations_csv:
        artifacts["violations_csv"] = write_violations_csv(
            result.violations, output_dir / VIOLATIONS_CSV_FILENAME
        )

    valid = result.is_valid
    if vcfg.fail_on_warnings and result.summary.warning_count > 0:
        logging.warning(
            "fail_on_warnings is set: %d warning(s) make this run invalid.",
            result.summary.warning_count,
        )
        valid = False

    dt = time.perf_counter() - t0
    logging.info("Pipeline finished in %.2f s", dt)

    return {
        "valid": valid,
        "error_count": result.summary.error_count,
        "warning_count": result.summary.warning_count,
        "runtime_seconds": dt,
        "artifacts": artifacts,
    }


def main(argv: list[str] | None = None) -> int:
    """
    @brief
    CLI entry point for the validation pipeline.

    @details
    Returns numeric exit codes suitable for shell integration:
      0 – schedule valid
      1 – schedule invalid, or controlled failure (config/data/persistence)
      2 – unexpected crash
    """
    _setup_logging()
    args = _parse_args(argv)

    config_path = Path(args.config)
    input_path = Path(args.input) if args.input else None
    output_dir = Path(args.output) if args.output else None

    try:
        result = run_pipeline(config_path, input_path, output_dir)
        written = [p.name for p in result["artifacts"].values() if p is not None]
        logging.info("Artifacts written: %s", ", ".join(written) or "none")
        return 0 if result.get("valid") else 1

    except RosterGuardError as e:
        logging.error(str(e))
        logging.debug("Error details: %s", e.to_dict())
        return 1
    except Exception:
        logging.error("Unexpected error occurred:")
        traceback.print_exc()
        return 2


if __name__ == "__main__":
    sys.exit(main())
