"""
spopt.py

Command line entrypoint: load a decoded track document, optimise Star Power and
print the path summary.

Integration
- Loads config (config.py) and applies command line overrides
- Loads the track document (track_document.py)
- Builds the ProcessedSong and runs the Optimiser on a worker thread so Ctrl+C
  can cancel it cooperatively
- Prints the summary, or the per-measure report as JSON with --report

Exit codes
- 0 success
- 2 configuration or track document error
- 130 cancelled
"""

from __future__ import annotations

import argparse
import json
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import measure_report
import optimiser
from config import AppConfig, load_config
from logging_setup import setup_logging
from path_models import Path as SpPath
from processed import ProcessedSong
from track_document import ChartDataError, load_track_document


logger = logging.getLogger("spopt")


@dataclass
class _WorkerState:
    path: Optional[SpPath] = None
    error: Optional[BaseException] = None


def _build_argument_parser() -> argparse.ArgumentParser:
    argument_parser = argparse.ArgumentParser(description="Star Power path optimiser")
    argument_parser.add_argument("track", type=Path, help="Decoded track document (JSON).")
    argument_parser.add_argument("--config", type=Path, default=None, help="Config file to use instead of the search path.")
    argument_parser.add_argument("--engine", default=None, help="Engine name, for example ch_guitar or rb.")
    argument_parser.add_argument("--squeeze", type=int, default=None, help="Squeeze percent (0-100).")
    argument_parser.add_argument("--early-whammy", type=int, default=None, help="Early whammy percent (0-100).")
    argument_parser.add_argument("--lazy-whammy", type=int, default=None, help="Lazy whammy in milliseconds.")
    argument_parser.add_argument("--whammy-delay", type=int, default=None, help="Whammy delay in milliseconds.")
    argument_parser.add_argument("--video-lag", type=int, default=None, help="Video lag in milliseconds (-200 to 200).")
    argument_parser.add_argument("--disable-kick", action="store_true", help="Drop single kick notes.")
    argument_parser.add_argument("--enable-double-kick", action="store_true", help="Keep double kick notes.")
    argument_parser.add_argument("--no-pro-drums", action="store_true", help="Score cymbals as toms.")
    argument_parser.add_argument("--no-disco-flip", action="store_true", help="Ignore disco flips.")
    argument_parser.add_argument("--report", action="store_true", help="Print the per-measure report as JSON.")
    argument_parser.add_argument("--quiet", action="store_true", help="Only log errors.")
    argument_parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    return argument_parser


def _apply_argument_overrides(config: AppConfig, parsed_args: argparse.Namespace) -> AppConfig:
    config_dict: Dict[str, Any] = config.model_dump()
    squeeze_section = config_dict["squeeze"]
    drums_section = config_dict["drums"]

    if parsed_args.engine is not None:
        config_dict["engine"] = parsed_args.engine
    for argument_name, key_name in (
        ("squeeze", "squeeze"),
        ("early_whammy", "early_whammy"),
        ("lazy_whammy", "lazy_whammy"),
        ("whammy_delay", "whammy_delay"),
        ("video_lag", "video_lag"),
    ):
        value = getattr(parsed_args, argument_name)
        if value is not None:
            squeeze_section[key_name] = int(value)

    if parsed_args.disable_kick:
        drums_section["disable_kick"] = True
    if parsed_args.enable_double_kick:
        drums_section["enable_double_kick"] = True
    if parsed_args.no_pro_drums:
        drums_section["pro_drums"] = False
    if parsed_args.no_disco_flip:
        drums_section["enable_disco_flip"] = False

    try:
        return AppConfig.model_validate(config_dict)
    except ValueError as exception:
        raise ValueError(f"Invalid command line settings:\n{exception}") from exception


def _run_optimiser(song: ProcessedSong) -> SpPath:
    terminate_event = threading.Event()
    worker_state = _WorkerState()
    search = optimiser.Optimiser(song, terminate_event)

    def worker() -> None:
        try:
            worker_state.path = search.optimal_path()
        except BaseException as exception:
            worker_state.error = exception

    worker_thread = threading.Thread(target=worker, name="spopt-optimiser", daemon=True)
    worker_thread.start()
    try:
        while worker_thread.is_alive():
            worker_thread.join(timeout=0.1)
    except KeyboardInterrupt:
        logger.warning("Cancelling optimisation")
        terminate_event.set()
        worker_thread.join()

    if worker_state.error is not None:
        raise worker_state.error
    if worker_state.path is None:
        raise optimiser.OptimiserCancelledError("Optimisation cancelled")
    return worker_state.path


def main(argv: Optional[List[str]] = None) -> int:
    parsed_args = _build_argument_parser().parse_args(argv)
    setup_logging(parsed_args)

    try:
        app_config, config_path = load_config(parsed_args.config)
        app_config = _apply_argument_overrides(app_config, parsed_args)
        loaded = load_track_document(parsed_args.track)
    except (ChartDataError, ValueError, OSError) as exception:
        error_payload = {"ok": False, "error": str(exception)}
        print(json.dumps(error_payload, ensure_ascii=False, indent=2))
        return 2

    logger.info("Using config %s", config_path if config_path is not None else "(defaults)")

    song = ProcessedSong(
        loaded.track,
        loaded.tempo_map,
        app_config.to_squeeze_settings(),
        app_config.to_drum_settings(),
        app_config.to_engine(),
        loaded.unison_phrases,
    )

    try:
        best_path = _run_optimiser(song)
    except optimiser.OptimiserCancelledError:
        print("Optimisation cancelled")
        return 130

    if parsed_args.report:
        report = measure_report.build_measure_report(song, best_path)
        print(json.dumps(report.to_dict(), ensure_ascii=False, indent=2))
        return 0

    print(song.path_summary(best_path))
    for line in optimiser.activations_summary(song, best_path):
        print(line)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
