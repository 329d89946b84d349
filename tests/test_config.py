import pytest

from commitment_engine.config import DEFAULT_CONFIG, config_from_mapping, load_config
from commitment_engine.normalize import IdentityNormalizer


def test_load_config_overrides_and_extends_synonyms(tmp_path):
    path = tmp_path / "engine.yaml"
    path.write_text(
        "overlap_critical_minutes: 45\n"
        "synonyms:\n"
        "  Jog: Exercise\n",
        encoding="utf-8",
    )
    config = load_config(path)

    assert config.overlap_critical_minutes == 45
    assert config.synonyms["jog"] == "exercise"
    assert config.synonyms["gym"] == "exercise"
    assert DEFAULT_CONFIG.overlap_critical_minutes == 30
    assert "jog" not in DEFAULT_CONFIG.synonyms
    assert IdentityNormalizer(synonyms=config.synonyms).canonical("Evening jog") == "exercise"


def test_empty_config_file_keeps_defaults(tmp_path):
    path = tmp_path / "engine.yaml"
    path.write_text("", encoding="utf-8")
    assert load_config(path) == DEFAULT_CONFIG


def test_invalid_config_is_rejected(tmp_path):
    with pytest.raises(ValueError, match="Unknown config keys"):
        config_from_mapping({"overlap_minutes": 10})
    with pytest.raises(ValueError, match="synonyms"):
        config_from_mapping({"synonyms": ["jog"]})

    path = tmp_path / "engine.yaml"
    path.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ValueError, match="mapping"):
        load_config(path)
