import json
from pathlib import Path

import pytest

from digitnet.core.errors import DataLoadError, ShapeMismatch
from digitnet.training import pipelines


def _config(run_dir: Path, **train_overrides):
    config = pipelines.load_preset("synthetic-min")
    config["data"]["options"].update({"n_train": 60, "n_test": 20})
    config["train"].update({"max_epochs": 3, "run_dir": str(run_dir), **train_overrides})
    return config


def test_pipeline_produces_artifacts(tmp_path):
    result = pipelines.run_pipeline(_config(tmp_path / "run"))
    run_dir = tmp_path / "run"

    records = [json.loads(line) for line in Path(result.metrics_path).read_text().splitlines()]
    assert len(records) == result.epochs
    assert [r["epoch"] for r in records] == list(range(1, result.epochs + 1))
    assert {"accuracy", "learning_rate", "cost", "seed", "sha"} <= set(records[0])
    assert 0.0 <= result.accuracy <= 1.0

    manifest = json.loads(Path(result.manifest_path).read_text())
    assert manifest["network"]["layer_sizes"] == [64, 16, 10]
    assert manifest["dataset"]["type"] == "synthetic"
    assert manifest["config"]["model"]["layer_sizes"] == [64, 16, 10]

    matrix = json.loads((run_dir / "confusion_matrix.json").read_text())["matrix"]
    assert len(matrix) == 10
    assert sum(map(sum, matrix)) == 20

    summary = json.loads(Path(result.summary_path).read_text())
    assert summary["epochs"] == result.epochs
    assert summary["final_accuracy"] == pytest.approx(result.accuracy)
    assert (run_dir / "metrics.csv").exists()
    assert (run_dir / "config.json").exists()


def test_pipeline_is_deterministic_for_a_seed(tmp_path):
    first = pipelines.run_pipeline(_config(tmp_path / "a"))
    second = pipelines.run_pipeline(_config(tmp_path / "b"))
    assert first.accuracy == second.accuracy
    assert Path(first.metrics_path).read_text() == Path(second.metrics_path).read_text()


def test_pipeline_writes_plot_when_enabled(tmp_path):
    pipelines.run_pipeline(_config(tmp_path / "run", enable_plots=True))
    assert (tmp_path / "run" / "accuracy.png").exists()


def test_pipeline_rejects_missing_sections(tmp_path):
    config = _config(tmp_path / "run")
    del config["model"]
    with pytest.raises(KeyError):
        pipelines.run_pipeline(config)


def test_pipeline_rejects_mismatched_layer_sizes(tmp_path):
    config = _config(tmp_path / "run")
    config["model"] = {"layer_sizes": [784, 16, 10]}
    with pytest.raises(ShapeMismatch):
        pipelines.run_pipeline(config)


def test_pipeline_reports_unreadable_dataset(tmp_path):
    config = _config(tmp_path / "run")
    config["data"] = {
        "name": "emnist_csv",
        "options": {"train_path": str(tmp_path / "missing.csv"), "test_path": None},
    }
    with pytest.raises(DataLoadError):
        pipelines.run_pipeline(config)
    assert not (tmp_path / "run").exists()


def test_presets_include_builtin_and_file_presets():
    names = set(pipelines.presets())
    assert {"synthetic-min", "mnist-sigmoid", "emnist-basic", "synthetic-deep"} <= names
    schedule = pipelines.load_preset("mnist-sigmoid")["train"]
    assert schedule["initial_learning_rate"] == 0.4
    assert schedule["accuracy_thresholds"] == [0.8, 0.85, 0.9, 0.95]
    with pytest.raises(KeyError):
        pipelines.load_preset("nope")


def test_load_preset_returns_independent_copies():
    first = pipelines.load_preset("synthetic-min")
    first["train"]["max_epochs"] = 1
    assert pipelines.load_preset("synthetic-min")["train"]["max_epochs"] == 30


def test_build_layer_sizes_from_hidden():
    assert pipelines.build_layer_sizes({"hidden": [5, 4]}, 9, 3) == [9, 5, 4, 3]
    assert pipelines.build_layer_sizes({}, 9, 3) == [9, 3]
