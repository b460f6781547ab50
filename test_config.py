"""Persisted exam settings."""
import pytest

from examkit.config import ConfigStore
from examkit.models import ExamConfiguration, clamp_passing_score


def test_defaults_when_nothing_stored(store):
    config = ConfigStore(store).load()
    assert config == ExamConfiguration()
    assert config.passing_score == 60
    assert config.auto_save and config.show_explanation
    assert not config.shuffle_questions and not config.shuffle_options


@pytest.mark.parametrize("value, expected", [
    (150, 100),
    (-5, 0),
    ("abc", 60),
    ("75", 75),
    (72.9, 72),
    (None, 60),
    (True, 60),
])
def test_passing_score_clamping(value, expected):
    assert clamp_passing_score(value) == expected


def test_update_persists_and_clamps(store):
    configs = ConfigStore(store)
    updated = configs.update(passing_score=150, shuffle_options=True)
    assert updated.passing_score == 100
    assert updated.shuffle_options

    reloaded = ConfigStore(store).load()
    assert reloaded == updated


def test_update_rejects_unknown_setting(store):
    with pytest.raises(TypeError):
        ConfigStore(store).update(time_limit=30)


def test_stored_junk_falls_back_to_defaults(store):
    store.set("exam_config", ["not", "a", "dict"])
    assert ConfigStore(store).load() == ExamConfiguration()


def test_partial_stored_config_merges_over_defaults(store):
    store.set("exam_config", {"passing_score": "-20", "shuffle_questions": True, "legacy": 1})
    config = ConfigStore(store).load()
    assert config.passing_score == 0
    assert config.shuffle_questions
    assert config.auto_save


def test_non_dict_config_gives_defaults():
    assert ExamConfiguration.from_dict(["junk"]) == ExamConfiguration()
    assert ExamConfiguration.from_dict(None) == ExamConfiguration()
