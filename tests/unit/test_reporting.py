import csv
import json

import numpy as np

from digitnet.core.network import Network
from digitnet.core.types import Sample
from digitnet.reporting import CsvSink, JsonlSink, MetricsCapture, PlotAdapter, write_summary
from digitnet.reporting.artifacts import write_confusion_matrix
from digitnet.training.metrics import accuracy, confusion_matrix, target_label, top_k


def test_jsonl_and_csv_sinks(tmp_path):
    jsonl = JsonlSink(tmp_path / "metrics.jsonl", seed=7, sha="abc")
    table = CsvSink(tmp_path / "metrics.csv")
    for epoch, acc in [(1, 0.5), (2, 0.75)]:
        metrics = {"accuracy": acc, "learning_rate": 0.4, "cost": 0.1}
        jsonl.on_epoch(epoch, metrics)
        table.on_epoch(epoch, metrics)

    records = [json.loads(line) for line in jsonl.path.read_text().splitlines()]
    assert records[1] == {
        "epoch": 2,
        "seed": 7,
        "sha": "abc",
        "accuracy": 0.75,
        "learning_rate": 0.4,
        "cost": 0.1,
    }
    with table.path.open() as handle:
        rows = list(csv.DictReader(handle))
    assert list(rows[0].keys()) == ["epoch", "accuracy", "cost", "learning_rate"]
    assert rows[1]["accuracy"] == "0.75"


def test_metrics_capture_keeps_history():
    capture = MetricsCapture()
    capture.on_epoch(1, {"accuracy": 0.1})
    capture.on_epoch(2, {"accuracy": 0.2})
    assert capture.last == {"accuracy": 0.2}
    assert [epoch for epoch, _ in capture.history] == [1, 2]


def test_summary_is_deterministic(tmp_path):
    jsonl = JsonlSink(tmp_path / "metrics.jsonl", seed=0, sha="abc")
    for epoch, acc in enumerate([0.2, 0.6, 0.4], start=1):
        jsonl.on_epoch(epoch, {"accuracy": acc})
    first = write_summary(jsonl.path, tmp_path / "a.json", final_accuracy=0.6)
    second = write_summary(jsonl.path, tmp_path / "b.json", final_accuracy=0.6)

    summary = json.loads(open(first).read())
    assert open(first).read() == open(second).read()
    assert summary["epochs"] == 3
    assert summary["final_accuracy"] == 0.6
    assert summary["metrics"]["accuracy"]["max"] == 0.6
    assert summary["metrics"]["accuracy"]["last"] == 0.4
    assert summary["best_epoch"] == 2


def test_plot_adapter_writes_png(tmp_path):
    plots = PlotAdapter(tmp_path, enable_plots=True)
    plots.on_epoch(1, {"accuracy": 0.4})
    plots.on_epoch(2, {"accuracy": 0.7})
    path = plots.close()
    assert path is not None and path.exists()

    disabled = PlotAdapter(tmp_path / "off")
    disabled.on_epoch(1, {"accuracy": 0.4})
    assert disabled.close() is None


def test_top_k_orders_by_activation_with_stable_ties():
    ranking = top_k(np.array([0.2, 0.5, 0.5, 0.1]), 3)
    assert ranking == [(1, 0.5), (2, 0.5), (0, 0.2)]
    assert len(top_k(np.arange(3), 5)) == 3


def test_accuracy_and_confusion_matrix(tmp_path):
    net = Network([2, 2], seed=0)
    net.layers[0].set_parameters([[5.0, -5.0], [-5.0, 5.0]], [0.0, 0.0])
    samples = [
        Sample.from_label([1.0, 0.0], 0, 2),
        Sample.from_label([0.0, 1.0], 1, 2),
        Sample.from_label([1.0, 0.0], 1, 2),
        Sample(inputs=[0.0, 1.0], expected_output=[0.0, 1.0]),
    ]
    assert target_label(samples[3]) == 1
    assert accuracy(net, samples) == 0.75
    matrix = confusion_matrix(net, samples)
    assert matrix.tolist() == [[1, 0], [1, 2]]

    path = write_confusion_matrix(tmp_path / "cm.json", matrix)
    assert json.loads(open(path).read())["matrix"] == [[1, 0], [1, 2]]
