import json
from pathlib import Path

import pytest

from cli.main import main


def test_cli_separable_preset(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    main(["--preset", "separable-toy", "--epochs", "5", "--no-progress"])
    run_dir = Path("runs/separable-toy")
    assert (run_dir / "metrics.jsonl").exists()
    assert (run_dir / "manifest.json").exists()
    assert (run_dir / "last.ckpt").exists()
    out = capsys.readouterr().out
    assert "=== sgdnet run ===" in out
    result = json.loads(out.strip().splitlines()[-1])
    assert result["steps"] == 5 * 4


def test_cli_flag_overrides(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    dump = tmp_path / "resolved.json"
    main(
        [
            "--preset",
            "blobs-small",
            "--layers",
            "2,6,3",
            "--epochs",
            "2",
            "--batch-size",
            "7",
            "--eta",
            "0.5",
            "--workers",
            "2",
            "--partial-batches",
            "process",
            "--run-dir",
            "out",
            "--trace",
            "--dump-config",
            str(dump),
        ]
    )
    resolved = json.loads(dump.read_text())
    assert resolved["model"]["layers"] == [2, 6, 3]
    assert resolved["train"]["batch_size"] == 7
    assert resolved["train"]["partial_batches"] == "process"
    assert (tmp_path / "out" / "trace.json").exists()


def test_cli_mnist_fixture_preset(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    main(["--preset", "mnist-fixture-quick", "--epochs", "1", "--data-dir", str(tmp_path / "none")])
    manifest = json.loads(Path("runs/mnist-fixture-quick/manifest.json").read_text())
    assert manifest["dataset"]["mode"] == "offline-fixture"
    final = json.loads(Path("runs/mnist-fixture-quick/final_metrics.json").read_text())
    assert set(final["splits"]) == {"train", "test"}
    assert len(final["confusion"]) == 10


def test_cli_show_misses(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    main(["--preset", "separable-toy", "--epochs", "1", "--eta", "0", "--show-misses", "8"])
    out = capsys.readouterr().out
    assert "examples misclassified" in out


def test_cli_list_presets(capsys):
    with pytest.raises(SystemExit):
        main(["--list-presets"])
    assert "separable-toy" in capsys.readouterr().out.split()
