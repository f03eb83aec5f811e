import json
from pathlib import Path

import pytest

from cli.main import main


def _small_override(tmp_path: Path) -> Path:
    override = tmp_path / "override.json"
    override.write_text(
        json.dumps(
            {
                "data": {"options": {"n_train": 40, "n_test": 10}},
                "train": {"max_epochs": 2},
            }
        )
    )
    return override


def test_cli_synthetic_preset(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    main(
        [
            "--preset",
            "synthetic-min",
            "--config",
            str(_small_override(tmp_path)),
            "--run-dir",
            "runs/cli",
            "--seed",
            "3",
        ]
    )
    payload = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    run_dir = Path("runs/cli")
    assert payload["epochs"] <= 2
    assert (run_dir / "metrics.jsonl").exists()
    assert (run_dir / "manifest.json").exists()
    manifest = json.loads((run_dir / "manifest.json").read_text())
    assert manifest["config"]["train"]["seed"] == 3
    assert manifest["config"]["data"]["options"]["image_size"] == 8


def test_cli_dump_config(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    dump = tmp_path / "resolved.json"
    main(
        [
            "--config",
            str(_small_override(tmp_path)),
            "--run-dir",
            "runs/dump",
            "--dump-config",
            str(dump),
        ]
    )
    resolved = json.loads(dump.read_text())
    assert resolved["train"]["max_epochs"] == 2
    assert resolved["train"]["run_dir"] == "runs/dump"
    assert resolved["model"]["hidden"] == [16]


def test_cli_lists_presets_and_datasets(capsys):
    with pytest.raises(SystemExit) as info:
        main(["--list-presets"])
    assert info.value.code == 0
    assert "synthetic-min" in capsys.readouterr().out.split()

    with pytest.raises(SystemExit):
        main(["--list-datasets"])
    assert "emnist_csv" in capsys.readouterr().out.split()


def test_cli_missing_csv_exits_with_error(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(SystemExit) as info:
        main(["--train-csv", str(tmp_path / "absent.csv"), "--run-dir", "runs/bad"])
    assert info.value.code == 2


def test_cli_trains_from_csv_files(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    rows = []
    for idx in range(20):
        pixels = [0] * 784
        pixels[idx % 10 * 28 : idx % 10 * 28 + 28] = [255] * 28
        rows.append(",".join(str(v) for v in [idx % 10, *pixels]))
    csv = tmp_path / "digits.csv"
    csv.write_text("\n".join(rows) + "\n")
    override = tmp_path / "tiny.json"
    override.write_text(json.dumps({"model": {"hidden": [8]}, "train": {"max_epochs": 1}}))

    main(
        [
            "--preset",
            "emnist-basic",
            "--config",
            str(override),
            "--train-csv",
            str(csv),
            "--test-csv",
            str(csv),
            "--max-test",
            "10",
            "--run-dir",
            "runs/csv",
        ]
    )
    payload = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert payload["epochs"] == 1
    manifest = json.loads(Path(payload["manifest"]).read_text())
    assert manifest["network"]["layer_sizes"] == [784, 8, 10]
    assert manifest["dataset"]["max_test"] == 10


def test_cli_single_row_csv_exits_with_error(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    csv = tmp_path / "one.csv"
    csv.write_text(",".join(["4"] + ["0"] * 784) + "\n")
    with pytest.raises(SystemExit) as info:
        main(["--preset", "emnist-basic", "--train-csv", str(csv), "--run-dir", "runs/one"])
    assert info.value.code == 2
    assert not Path("runs/one").exists()


def test_cli_test_csv_requires_a_csv_dataset(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(SystemExit) as info:
        main(["--preset", "synthetic-min", "--test-csv", str(tmp_path / "test.csv")])
    assert info.value.code == 2
    assert "--test-csv" in capsys.readouterr().err


def test_cli_test_csv_overrides_emnist_preset(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    dump = tmp_path / "resolved.json"
    test_csv = str(tmp_path / "test.csv")
    with pytest.raises(SystemExit):
        main(["--preset", "emnist-basic", "--test-csv", test_csv, "--dump-config", str(dump)])
    resolved = json.loads(dump.read_text())
    assert resolved["data"]["options"]["test_path"] == test_csv
