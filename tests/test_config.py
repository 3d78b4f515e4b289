import json
from pathlib import Path

import yaml

from nasbulk.config import DEFAULT_EXTENSIONS, ImportConfig, load_config, sample_config


def test_defaults() -> None:
    cfg = ImportConfig()
    assert cfg.valid_extensions == DEFAULT_EXTENSIONS
    assert cfg.accepts(Path("wing.BDF"))
    assert not cfg.accepts(Path("wing.txt"))
    assert cfg.check_duplicate_ids


def test_load_yaml_and_json(tmp_path: Path) -> None:
    payload = {
        "encoding": "ascii",
        "include_dirs": ["inc"],
        "include_symbols": {"models": "/data/models"},
        "valid_extensions": ["bdf", ".DAT"],
        "check_duplicate_ids": False,
    }
    yaml_path = tmp_path / "import.yaml"
    yaml_path.write_text(yaml.safe_dump(payload))
    json_path = tmp_path / "import.json"
    json_path.write_text(json.dumps(payload))

    for path in (yaml_path, json_path):
        cfg = load_config(path)
        assert cfg.encoding == "ascii"
        assert cfg.include_dirs == (Path("inc"),)
        assert cfg.valid_extensions == (".bdf", ".dat")
        assert cfg.check_duplicate_ids is False
        assert cfg.expand_symbol("MODELS:wing/box.bdf") == str(Path("/data/models") / "wing/box.bdf")
        assert cfg.expand_symbol("C:/local/box.bdf") == "C:/local/box.bdf"


def test_sample_config_round_trips() -> None:
    cfg = ImportConfig.from_mapping(sample_config())
    assert cfg.include_symbols == {"MODELS": Path("/data/models")}
    assert cfg.valid_extensions == DEFAULT_EXTENSIONS
