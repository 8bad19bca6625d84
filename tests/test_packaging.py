from pathlib import Path

import bittensor as bt

ROOT = Path(__file__).resolve().parents[1]


def test_bittensor_range_keeps_logging_api():
    lines = (ROOT / "requirements.txt").read_text(encoding="utf-8").splitlines()
    [requirement] = [line.strip() for line in lines if line.strip().startswith("bittensor")]
    # bt.logging is gone in bittensor 11.
    assert "<11" in requirement


def test_installed_bittensor_has_logging():
    for level in ("debug", "info", "warning"):
        assert callable(getattr(bt.logging, level))
