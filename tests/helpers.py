import copy
import json
from pathlib import Path

from bucketsim.schema import SimulationConfig


def write_config(tmp_path: Path, data: dict, filename: str = "config.json") -> Path:
    path = tmp_path / filename
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def clone_config(data: dict) -> dict:
    return copy.deepcopy(data)


def config_with(data: dict, mutator) -> SimulationConfig:
    clone = clone_config(data)
    mutator(clone)
    return SimulationConfig.from_dict(clone)
