"""Pipeline assembly: config -> dataset -> network -> trainer -> artifacts."""

from __future__ import annotations

import json
import time
from copy import deepcopy
from pathlib import Path
from typing import Dict, List, Mapping

import yaml
from loguru import logger

from ..core.errors import ShapeMismatch
from ..core.network import Network
from ..core.types import RunResult, TrainerConfig
from ..data import registry
from ..reporting.artifacts import write_confusion_matrix, write_manifest
from ..reporting.metrics import CsvSink, JsonlSink, MetricsCapture
from ..reporting.plots import PlotAdapter
from ..reporting.summary import write_summary
from .metrics import confusion_matrix
from .trainer import Trainer

_ORIGINAL_SCHEDULE = {
    "initial_learning_rate": 0.4,
    "min_learning_rate": 0.01,
    "decay_factor": 0.8,
    "batch_size": 128,
    "max_epochs": 200,
    "target_accuracy": 0.99,
    "patience": 10,
    "accuracy_thresholds": [0.8, 0.85, 0.9, 0.95],
}

_PRESETS: Dict[str, Mapping[str, object]] = {
    "synthetic-min": {
        "data": {
            "name": "synthetic",
            "options": {"n_train": 200, "n_test": 50, "image_size": 8, "seed": 0},
        },
        "model": {"hidden": [16]},
        "train": {
            "initial_learning_rate": 3.0,
            "min_learning_rate": 0.5,
            "decay_factor": 0.8,
            "batch_size": 10,
            "max_epochs": 30,
            "target_accuracy": 0.95,
            "patience": 10,
            "accuracy_thresholds": [0.5, 0.8, 0.9],
            "seed": 0,
            "run_dir": "runs/synthetic-min",
            "enable_plots": False,
        },
    },
    "mnist-sigmoid": {
        "data": {
            "name": "emnist_csv",
            "options": {"max_train": 20000, "max_test": 2000},
        },
        "model": {"hidden": [256]},
        "train": {
            **_ORIGINAL_SCHEDULE,
            "seed": 0,
            "run_dir": "runs/mnist-sigmoid",
            "enable_plots": True,
        },
    },
    "digit-recognizer": {
        "data": {
            "name": "emnist_csv",
            "options": {"max_train": 40000, "max_test": 5000},
        },
        "model": {"hidden": [256]},
        "train": {
            **_ORIGINAL_SCHEDULE,
            "seed": 0,
            "run_dir": "runs/digit-recognizer",
            "enable_plots": True,
        },
    },
    "emnist-basic": {
        "data": {
            "name": "emnist_csv",
            "options": {"max_train": 10000, "max_test": 1000},
        },
        "model": {"hidden": [128, 64]},
        "train": {
            "initial_learning_rate": 0.01,
            "min_learning_rate": 0.01,
            "decay_factor": 1.0,
            "batch_size": 100,
            "max_epochs": 5,
            "target_accuracy": 1.0,
            "patience": 5,
            "accuracy_thresholds": [],
            "seed": 0,
            "run_dir": "runs/emnist-basic",
            "enable_plots": False,
        },
    },
}

_PRESET_DIR = Path(__file__).resolve().parents[2] / "configs" / "presets"
_FILE_PRESETS_CACHE: Dict[str, Mapping[str, object]] | None = None


def read_config_file(path: Path) -> Mapping[str, object]:
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported config file type: {path.suffix}")

    if not isinstance(data, Mapping):
        raise TypeError(f"Config {path.name} must decode to a mapping")
    return data


def _file_presets() -> Dict[str, Mapping[str, object]]:
    global _FILE_PRESETS_CACHE
    if _FILE_PRESETS_CACHE is None:
        found: Dict[str, Mapping[str, object]] = {}
        if _PRESET_DIR.exists():
            for file in sorted(_PRESET_DIR.iterdir()):
                if file.suffix.lower() not in {".yaml", ".yml", ".json"}:
                    continue
                data = read_config_file(file)
                missing = {"data", "model", "train"} - set(data)
                if missing:
                    missing_str = ", ".join(sorted(missing))
                    raise KeyError(
                        f"Preset {file.name} is missing required sections: {missing_str}"
                    )
                found[file.stem] = json.loads(json.dumps(data))
        _FILE_PRESETS_CACHE = found
    return {name: deepcopy(cfg) for name, cfg in _FILE_PRESETS_CACHE.items()}


def presets() -> Mapping[str, Mapping[str, object]]:
    combined: Dict[str, Mapping[str, object]] = {}
    combined.update({name: deepcopy(cfg) for name, cfg in _PRESETS.items()})
    combined.update(_file_presets())
    return combined


def load_preset(name: str) -> Mapping[str, object]:
    file_overrides = _file_presets()
    if name in file_overrides:
        return file_overrides[name]
    try:
        return deepcopy(_PRESETS[name])
    except KeyError as exc:
        raise KeyError(f"Unknown preset: {name}") from exc


def build_layer_sizes(
    model_cfg: Mapping[str, object], input_size: int, num_classes: int
) -> List[int]:
    """Resolve ``layer_sizes`` or ``hidden`` against the dataset's shape."""

    if "layer_sizes" in model_cfg:
        dims = [int(s) for s in model_cfg["layer_sizes"]]  # type: ignore[union-attr]
    else:
        dims = [input_size, *(int(h) for h in model_cfg.get("hidden", [])), num_classes]
    if dims[0] != input_size:
        raise ShapeMismatch(f"Configured input size {dims[0]} but dataset has {input_size}")
    if dims[-1] != num_classes:
        raise ShapeMismatch(f"Configured output size {dims[-1]} but dataset has {num_classes}")
    return dims


def run_pipeline(
    config: Mapping[str, object],
    *,
    progress_hook: object | None = None,
    cancel: object | None = None,
) -> RunResult:
    for section in ("data", "model", "train"):
        if section not in config:
            raise KeyError(f"Config is missing the {section!r} section")
    data_cfg = dict(config["data"])  # type: ignore[arg-type]
    model_cfg = dict(config["model"])  # type: ignore[arg-type]
    train_cfg = dict(config["train"])  # type: ignore[arg-type]

    trainer_config = TrainerConfig.from_mapping(train_cfg)
    # Loading happens before any network exists so a bad dataset aborts cleanly.
    dataset = registry.get(data_cfg["name"], **data_cfg.get("options", {}))

    seed = int(train_cfg.get("seed", 0))
    dims = build_layer_sizes(model_cfg, dataset.input_size, dataset.num_classes)
    network = Network(dims, seed=seed)

    run_dir = _resolve_run_dir(train_cfg, dataset.name)
    run_dir.mkdir(parents=True, exist_ok=True)

    _log_startup_summary(
        dataset_name=dataset.name,
        splits=dataset.splits,
        dims=dims,
        config=trainer_config,
        param_count=network.parameter_count(),
    )

    jsonl = JsonlSink(run_dir / "metrics.jsonl", seed=seed)
    csv_sink = CsvSink(run_dir / "metrics.csv")
    capture = MetricsCapture()
    plots = PlotAdapter(run_dir, enable_plots=bool(train_cfg.get("enable_plots", False)))

    trainer = Trainer(network, callbacks=[jsonl, csv_sink, capture, plots])
    final_accuracy = trainer.train(
        dataset.train,
        dataset.test,
        trainer_config,
        progress_hook=progress_hook,
        cancel=cancel,  # type: ignore[arg-type]
    )
    plots.close()
    result = trainer.last_result
    logger.info(
        f"Training finished after {result.epochs} epoch(s) ({result.stop_reason}); "
        f"final accuracy {final_accuracy * 100:.2f}%"
    )

    write_confusion_matrix(
        run_dir / "confusion_matrix.json",
        confusion_matrix(network, dataset.test, dataset.num_classes),
    )
    safe_config = _safe_config(config, dims)
    manifest = write_manifest(
        run_dir / "manifest.json",
        config=safe_config,
        dataset_provenance=dataset.provenance,
        layer_sizes=dims,
    )
    summary_path = write_summary(
        jsonl.path, run_dir / "summary.json", final_accuracy=final_accuracy
    )
    (run_dir / "config.json").write_text(json.dumps(safe_config, indent=2))

    return RunResult(
        accuracy=final_accuracy,
        epochs=result.epochs,
        metrics_path=str(jsonl.path),
        manifest_path=manifest,
        summary_path=summary_path,
    )


def _resolve_run_dir(train_cfg: Mapping[str, object], dataset: str) -> Path:
    if "run_dir" in train_cfg:
        return Path(str(train_cfg["run_dir"]))
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    return Path("runs") / timestamp / dataset


def _safe_config(config: Mapping[str, object], dims: List[int]) -> Mapping[str, object]:
    copied = json.loads(json.dumps(config))
    copied.setdefault("model", {})["layer_sizes"] = list(dims)
    return copied


def _log_startup_summary(
    *,
    dataset_name: str,
    splits: Mapping[str, int],
    dims: List[int],
    config: TrainerConfig,
    param_count: int,
) -> None:
    logger.info("=== digitnet run ===")
    logger.info(f"Dataset       : {dataset_name} (train={splits['train']}, test={splits['test']})")
    logger.info(f"Layer sizes   : {dims}")
    logger.info(f"Parameters    : {param_count}")
    logger.info(
        f"Learning rate : {config.initial_learning_rate} -> {config.min_learning_rate} "
        f"(decay {config.decay_factor})"
    )
    logger.info(f"Batch size    : {config.batch_size}")
    logger.info(f"Max epochs    : {config.max_epochs}")
    logger.info(f"Target        : {config.target_accuracy} (patience {config.patience})")


__all__ = ["build_layer_sizes", "load_preset", "presets", "read_config_file", "run_pipeline"]
