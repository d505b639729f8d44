"""Tests for the example scripts under ``examples/``."""

import importlib.util
import re
from pathlib import Path

import pytest

_EXAMPLES = Path(__file__).resolve().parent.parent / "examples"


def _load(name):
    spec = importlib.util.spec_from_file_location(f"example_{name}", _EXAMPLES / f"{name}.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _printed_times(text):
    return [float(m) for m in re.findall(r"^t=(\S+)", text, flags=re.MULTILINE)]


class TestAdaptiveExample:
    @pytest.mark.parametrize("method", ["dormand-prince", "bogacki-shampine"])
    def test_last_step_lands_on_t_end(self, method, capsys):
        example = _load("adaptive")
        example.main(method=example.Method(method), dt=0.5, min_error=1e-8, t_end=1.0, verbose=False)
        times = _printed_times(capsys.readouterr().out)
        assert times
        assert all(t <= 1.0 for t in times)
        assert times[-1] == 1.0

    def test_hint_longer_than_interval(self, capsys):
        example = _load("adaptive")
        example.main(method=example.Method.euler_heun, dt=10.0, min_error=1e-6, t_end=0.25, verbose=False)
        times = _printed_times(capsys.readouterr().out)
        assert all(t <= 0.25 for t in times)
        assert times[-1] == 0.25
