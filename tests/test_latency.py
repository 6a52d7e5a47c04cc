import pytest

from kasconfig.latency import (
    LATENCY_CONFIGS,
    LatencyConfigProfile,
    WorkerLatencyProfile,
    config_values_for_profile,
)
from kasconfig.unstructured import nested_string_slice

NOT_READY = ("apiServerArguments", "default-not-ready-toleration-seconds")
UNREACHABLE = ("apiServerArguments", "default-unreachable-toleration-seconds")


def test_default_profile_values():
    observed = config_values_for_profile(WorkerLatencyProfile.DEFAULT)
    assert nested_string_slice(observed, *NOT_READY) == (["300"], True)
    assert nested_string_slice(observed, *UNREACHABLE) == (["300"], True)


def test_medium_profile_values():
    observed = config_values_for_profile("MediumUpdateAverageReaction")
    assert nested_string_slice(observed, *NOT_READY) == (["60"], True)


def test_medium_and_low_profiles_agree():
    medium = config_values_for_profile(WorkerLatencyProfile.MEDIUM_UPDATE_AVERAGE_REACTION)
    low = config_values_for_profile(WorkerLatencyProfile.LOW_UPDATE_SLOW_REACTION)
    assert medium == low
    assert medium != config_values_for_profile(WorkerLatencyProfile.DEFAULT)


@pytest.mark.parametrize("profile", list(WorkerLatencyProfile))
def test_every_profile_sets_every_path(profile):
    observed = config_values_for_profile(profile)
    assert set(observed["apiServerArguments"]) == {path[-1] for path in (NOT_READY, UNREACHABLE)}
    for config in LATENCY_CONFIGS:
        values, found = nested_string_slice(observed, *config.config_path)
        assert found
        assert values == [config.profile_config_values[profile]]


@pytest.mark.parametrize("profile", list(WorkerLatencyProfile))
def test_every_config_covers_every_profile(profile):
    observed = config_values_for_profile(profile)
    for config in LATENCY_CONFIGS:
        assert isinstance(config, LatencyConfigProfile)
        assert set(config.profile_config_values) == set(WorkerLatencyProfile)
        values, found = nested_string_slice(observed, *config.config_path)
        assert found
        assert len(values) == 1
        assert values[0].isdigit()


def test_unknown_profile_raises():
    with pytest.raises(ValueError):
        config_values_for_profile("Bogus")