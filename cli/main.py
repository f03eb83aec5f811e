"""Command line entry point for digitnet training runs."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Iterable

from loguru import logger

from digitnet.core.errors import DataLoadError
from digitnet.data import available_datasets
from digitnet.training import pipelines


def _format_result(result) -> str:
    payload = {
        "accuracy": result.accuracy,
        "epochs": result.epochs,
        "metrics": result.metrics_path,
        "manifest": result.manifest_path,
    }
    if getattr(result, "summary_path", ""):
        payload["summary"] = result.summary_path
    return json.dumps(payload, sort_keys=True)


def build_parser() -> argparse.ArgumentParser:
    preset_names = sorted(pipelines.presets().keys())
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--preset",
        choices=preset_names,
        default="synthetic-min",
        help="Preset configuration to execute",
    )
    parser.add_argument("--config", type=Path, help="Optional JSON/YAML config override")
    parser.add_argument(
        "--enable-plots", action="store_true", help="Write an accuracy plot for the run"
    )
    parser.add_argument("--seed", type=int, help="Seed used for weight initialisation")
    parser.add_argument("--run-dir", help="Directory receiving the run artifacts")
    parser.add_argument("--train-csv", help="EMNIST CSV used for training")
    parser.add_argument("--test-csv", help="EMNIST CSV used for evaluation")
    parser.add_argument("--max-train", type=int, help="Limit on training rows (<=0: all)")
    parser.add_argument("--max-test", type=int, help="Limit on evaluation rows (<=0: all)")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR"],
        help="Minimum level written to stderr",
    )
    parser.add_argument(
        "--list-presets", action="store_true", help="List available presets and exit"
    )
    parser.add_argument(
        "--list-datasets", action="store_true", help="List registered datasets and exit"
    )
    parser.add_argument(
        "--dump-config", type=Path, help="Dump the resolved config to a JSON file"
    )
    return parser


def _load_override(path: Path) -> dict:
    return dict(pipelines.read_config_file(path))


def _merge(base: dict, override: dict) -> dict:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _merge(dict(base[key]), value)
        else:
            base[key] = value
    return base


def _configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level)


def main(argv: Iterable[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)

    if args.list_presets:
        for name in sorted(pipelines.presets().keys()):
            print(name)
        raise SystemExit(0)

    if args.list_datasets:
        for name in available_datasets():
            print(name)
        raise SystemExit(0)

    config = json.loads(json.dumps(pipelines.load_preset(args.preset)))

    if args.config:
        override = _load_override(args.config)
        if {"data", "model", "train"} <= set(override.keys()):
            config = json.loads(json.dumps(override))
        else:
            config = _merge(config, override)

    if args.enable_plots:
        config.setdefault("train", {})["enable_plots"] = True
    if args.seed is not None:
        config.setdefault("train", {})["seed"] = int(args.seed)
    if args.run_dir:
        config.setdefault("train", {})["run_dir"] = args.run_dir

    if args.train_csv:
        opts = {"train_path": args.train_csv, "test_path": args.test_csv}
        config["data"] = {"name": "emnist_csv", "options": opts}
    data_cfg = config.setdefault("data", {})
    if data_cfg.get("name") == "emnist_csv":
        data_opts = data_cfg.setdefault("options", {})
        if args.test_csv and not args.train_csv:
            data_opts["test_path"] = args.test_csv
        if args.max_train is not None:
            data_opts["max_train"] = int(args.max_train)
        if args.max_test is not None:
            data_opts["max_test"] = int(args.max_test)
    elif args.test_csv and not args.train_csv:
        parser.error("--test-csv needs --train-csv or an emnist_csv preset")

    if args.dump_config:
        args.dump_config.parent.mkdir(parents=True, exist_ok=True)
        args.dump_config.write_text(json.dumps(config, indent=2))

    try:
        result = pipelines.run_pipeline(config)
    except DataLoadError as exc:
        logger.error(f"Error loading data: {exc}")
        raise SystemExit(2) from exc

    print(_format_result(result))


if __name__ == "__main__":
    main()
