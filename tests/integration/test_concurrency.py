import threading

import numpy as np
import pytest

from digitnet.core.errors import TrainingCancelled
from digitnet.core.network import Network
from digitnet.core.types import TrainerConfig
from digitnet.data import get_dataset
from digitnet.inference import LivePreview, grid_to_inputs
from digitnet.training import BackgroundTraining, Trainer


def _config(max_epochs: int = 3) -> TrainerConfig:
    return TrainerConfig(
        initial_learning_rate=3.0,
        min_learning_rate=0.5,
        decay_factor=0.8,
        batch_size=10,
        max_epochs=max_epochs,
        target_accuracy=1.0,
        patience=10,
        accuracy_thresholds=(),
    )


@pytest.fixture
def dataset():
    return get_dataset("synthetic", n_train=60, n_test=20, image_size=8, seed=1)


def test_snapshot_is_isolated_from_later_steps(dataset):
    net = Network([64, 8, 10], seed=0)
    before = net.snapshot()
    x = dataset.test[0].inputs
    expected = net.forward(x)

    net.learn(dataset.train[:10], 3.0)

    assert before.version == 0
    assert net.snapshot().version == 1
    assert np.array_equal(before.forward(x), expected)
    assert not np.array_equal(net.forward(x), expected)
    with pytest.raises(ValueError):
        before.layers[0].weights[0, 0] = 1.0


def test_background_training_reports_progress(dataset):
    trainer = Trainer(Network([64, 8, 10], seed=0))
    job = BackgroundTraining(trainer, dataset.train, dataset.test, _config()).start()
    events = list(job.events(timeout=30))

    epochs = trainer.last_result.epochs
    assert [e.kind for e in events] == ["epoch_start", "epoch_end"] * epochs + ["finished"]
    assert [e.epoch for e in events if e.kind == "epoch_end"] == list(range(1, epochs + 1))
    assert events[-1].epoch == epochs
    assert job.result(timeout=5) == trainer.last_result.final_accuracy
    assert not job.running


def test_background_training_can_be_cancelled(dataset):
    trainer = Trainer(Network([64, 8, 10], seed=0))
    job = BackgroundTraining(trainer, dataset.train, dataset.test, _config(max_epochs=50))
    job.cancel()
    job.start()
    events = list(job.events(timeout=30))

    assert events[-1].kind == "cancelled"
    with pytest.raises(TrainingCancelled):
        job.result(timeout=5)
    assert trainer.network.version == 0


def test_background_training_surfaces_failures(dataset):
    trainer = Trainer(Network([64, 8, 10], seed=0))
    job = BackgroundTraining(trainer, [], dataset.test, _config()).start()
    events = list(job.events(timeout=30))

    assert events[-1].kind == "failed"
    with pytest.raises(ValueError):
        job.result(timeout=5)


def test_live_preview_skips_blank_grids():
    net = Network([64, 8, 10], seed=0)
    received = []
    preview = LivePreview(net, lambda: np.zeros((8, 8)), received.append)
    assert preview.refresh_once() == []
    assert received == [[]]
    assert preview.last_version is None


def test_live_preview_ranks_snapshot_outputs():
    net = Network([64, 8, 10], seed=0)
    grid = np.zeros((8, 8))
    grid[2:6, 3] = 255
    received = []
    preview = LivePreview(net, lambda: grid, received.append, k=5)

    ranking = preview.refresh_once()

    expected = net.forward(grid_to_inputs(grid))
    assert len(ranking) == 5
    assert [score for _, score in ranking] == sorted((s for _, s in ranking), reverse=True)
    assert ranking[0] == (int(np.argmax(expected)), pytest.approx(float(expected.max())))
    assert preview.last_version == net.version


def test_live_preview_thread_delivers_updates():
    net = Network([64, 8, 10], seed=0)
    grid = np.full((8, 8), 128)
    delivered = threading.Event()
    rankings = []

    def sink(ranking):
        rankings.append(ranking)
        delivered.set()

    preview = LivePreview(net, lambda: grid, sink, interval=0.01).start()
    try:
        assert delivered.wait(5)
    finally:
        preview.stop(timeout=5)
    assert rankings[0]


def test_live_preview_rejects_bad_interval():
    with pytest.raises(ValueError):
        LivePreview(Network([4, 2], seed=0), lambda: np.zeros(4), print, interval=0)


def test_live_preview_keeps_running_after_a_failed_refresh():
    net = Network([64, 8, 10], seed=0)
    grid = np.full((8, 8), 128)
    calls = []
    delivered = threading.Event()

    def source():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("canvas not ready")
        return grid

    def sink(ranking):
        if ranking:
            delivered.set()

    preview = LivePreview(net, source, sink, interval=0.01).start()
    try:
        assert delivered.wait(5)
        assert preview.running
    finally:
        preview.stop(timeout=5)
    assert preview.failures == 1
    assert isinstance(preview.last_error, RuntimeError)
    assert not preview.running
