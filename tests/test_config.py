import pytest

import ssnit_automator.config as config
from ssnit_automator.data.form_defaults import format_amount
from ssnit_automator.main import apply_speed


@pytest.fixture
def restore_speed():
    yield
    apply_speed(None)


@pytest.mark.parametrize("profile", sorted(config.TIMING_PROFILES))
def test_profiles_respect_safety_floors(profile):
    assert config.validate_timing(config.TIMING_PROFILES[profile]) == []


def test_floor_violations_are_reported():
    violations = config.validate_timing({"pre_submit_min": 100, "dropdown_open_min": 10})
    assert len(violations) == 3


@pytest.mark.parametrize("speed, profile", [(None, "default"), ("dev", "dev_test"), ("super", "super_dev")])
def test_apply_speed_selects_profile(restore_speed, speed, profile):
    apply_speed(speed)
    assert config.TIMING == config.TIMING_PROFILES[profile]
    low, high = config.delay_range("pre_submit")
    assert low <= high


def test_format_amount():
    assert format_amount(210.5) == "210.50"
    assert format_amount("79") == "79.00"
