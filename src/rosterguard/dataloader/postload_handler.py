# src/rosterguard/dataloader/postload_handler.py
from __future__ import annotations

import json
import logging
from pathlib import Path

from rosterguard.dataloader.types import LoadResult, ValidationInput

logger = logging.getLogger(__name__)


class LoadResultHandler:
    """
    @brief
    Handles the LoadResult after dataset parsing and writes diagnostic reports if needed.

    @details
    If the load succeeded, the parsed ValidationInput is passed downstream.
    If it failed, the per-record issues are written to 'load_errors.json'
    and None is returned so the pipeline can stop before validation.
    """

    ERRORS_FILENAME = "load_errors.json"

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = output_dir

    def handle(self, result: LoadResult) -> ValidationInput | None:
        # (1) Success: hand the parsed data to the validator
        if result.success and result.data is not None:
            logger.info(
                "PostLoad: %d assignment(s) for %d broker(s) ready for validation.",
                len(result.data.assignments),
                len(result.data.brokers),
            )
            return result.data

        # (2) Failure: write the issue list next to the other artifacts
        self.output_dir.mkdir(parents=True, exist_ok=True)
        out_path = self.output_dir / self.ERRORS_FILENAME

        try:
            with out_path.open("w", encoding="utf-8") as f:
                json.dump(result.errors, f, ensure_ascii=False, indent=2)
            logger.error(
                "PostLoad: dataset rejected with %d issue(s). See %s",
                len(result.errors),
                out_path,
            )
        except OSError as e:
            logger.error("PostLoad: failed to write error report: %s", e)

        return None
