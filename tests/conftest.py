import json
from pathlib import Path

import pytest

from bucketsim.schema import SimulationConfig


@pytest.fixture
def sample_config_dict() -> dict:
    return json.loads(Path("sample_config.json").read_text(encoding="utf-8"))


@pytest.fixture
def sample_config(sample_config_dict) -> SimulationConfig:
    return SimulationConfig.from_dict(sample_config_dict)
