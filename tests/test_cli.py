import argparse
import json
import sys

import pytest

from circsim import cli
from circsim.core.metrics import HemodynamicMetrics
from circsim.physiology.params import ParameterValidationError


def _args(**overrides):
    defaults = dict(duration=1.0, speed=1.0, fps=60.0, realtime=False, instances=1,
                    config=None, record=False, record_dir="recordings",
                    record_interval=10.0, log_level="ERROR")
    defaults.update(overrides)
    return argparse.Namespace(**defaults)


class TestBuildEngine:
    def test_instances_from_count(self):
        engine = cli.build_engine({}, _args(instances=3))
        assert len(engine.instance_ids) == 3

    def test_instances_from_config(self):
        config = {
            "playback_speed": 2.0,
            "instances": [
                {"name": "Baseline"},
                {"name": "Aortic regurgitation", "params": {"ravr": 0.5}, "target_volume": 2100.0},
            ],
        }
        engine = cli.build_engine(config, _args(instances=5))
        ids = engine.instance_ids
        assert len(ids) == 2
        assert engine.config.playback_speed == 2.0
        leaky = engine.get_instance(ids[1])
        assert leaky.name == "Aortic regurgitation"
        assert leaky.params.ravr == 0.5
        assert leaky.target_volume == 2100.0

    def test_invalid_params_rejected(self):
        with pytest.raises(ParameterValidationError):
            cli.build_engine({"instances": [{"params": {"cvs": 0.0}}]}, _args())


def test_headless_run(monkeypatch, capsys):
    monkeypatch.setattr(sys, "argv", ["circsim", "--duration", "3", "--instances", "2",
                                      "--log-level", "ERROR"])
    cli.main()
    out = capsys.readouterr().out
    assert "Simulation completed" in out
    assert "Heart A" in out and "Heart B" in out
    assert "ABP" in out


def test_headless_run_with_recording(monkeypatch, capsys, tmp_path):
    record_dir = tmp_path / "rec"
    monkeypatch.setattr(sys, "argv", ["circsim", "--duration", "0.5", "--record",
                                      "--record-dir", str(record_dir), "--log-level", "ERROR"])
    cli.main()
    files = list(record_dir.glob("circsim_log_*.csv"))
    assert len(files) == 1
    assert files[0].read_text().count("\n") > 1


def test_config_file(monkeypatch, capsys, tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"instances": [{"name": "Tachycardic", "params": {"hr": 100}}]}))
    monkeypatch.setattr(sys, "argv", ["circsim", "--duration", "0.5", "--config", str(path),
                                      "--log-level", "ERROR"])
    cli.main()
    assert "Tachycardic" in capsys.readouterr().out


def test_bad_config_exits(monkeypatch, capsys, tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"instances": [{"params": {"rmvr": -1}}]}))
    monkeypatch.setattr(sys, "argv", ["circsim", "--config", str(path), "--log-level", "ERROR"])
    with pytest.raises(SystemExit):
        cli.main()
    assert "Invalid configuration" in capsys.readouterr().out


def test_format_metrics():
    m = HemodynamicMetrics(sbp=120.0, dbp=80.0, map=93.0, pa_sys=25.0, pa_dia=10.0,
                           cvp=4.0, pcwp=8.0, sv=70.0, co=4.2, ea_lv=1.7, hr=60.0)
    text = cli.format_metrics(m)
    assert "ABP 120/80" in text
    assert "CO 4.20 L/min" in text


def test_log_file_option(monkeypatch, tmp_path):
    log_file = tmp_path / "run.log"
    monkeypatch.setattr(sys, "argv", ["circsim", "--duration", "0.2", "--log-level", "DEBUG",
                                      "--log-file", str(log_file)])
    cli.main()
    text = log_file.read_text()
    assert "Engine started" in text
    # Per-beat commits need --trace-beats.
    assert "end-diastole commit" not in text


def test_tachycardia_needs_shorter_systole(monkeypatch, capsys, tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"instances": [{"params": {"hr": 180}}]}))
    monkeypatch.setattr(sys, "argv", ["circsim", "--config", str(path), "--log-level", "ERROR"])
    with pytest.raises(SystemExit):
        cli.main()
    assert "lv_tmax" in capsys.readouterr().out

    path.write_text(json.dumps({"instances": [{"name": "Tachy", "params": {
        "hr": 180, "lv_tmax": 200, "rv_tmax": 200}}]}))
    monkeypatch.setattr(sys, "argv", ["circsim", "--duration", "2", "--config", str(path),
                                      "--log-level", "ERROR"])
    cli.main()
    out = capsys.readouterr().out
    assert "Tachy" in out
    assert "diverged" not in out


def test_trace_beats_logs_commits(monkeypatch, tmp_path):
    log_file = tmp_path / "run.log"
    monkeypatch.setattr(sys, "argv", ["circsim", "--duration", "0.2", "--log-level", "DEBUG",
                                      "--trace-beats", "--log-file", str(log_file)])
    cli.main()
    assert "end-diastole commit" in log_file.read_text()
