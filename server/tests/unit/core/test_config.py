import pytest
from pydantic import ValidationError

from alert_engine.core.config import Settings
from alert_engine.domain.geo import DEFAULT_DANGER_ZONE_RADII, classify_severity
from alert_engine.domain.types import Severity

pytestmark = pytest.mark.unit


def test_partial_radii_override_keeps_other_event_kinds():
    cfg = Settings(DANGER_ZONE_RADII={"earthquake": {"critical": 80, "high": 250, "moderate": 450, "low": 900}})

    assert cfg.DANGER_ZONE_RADII["earthquake"]["critical"] == 80
    assert cfg.DANGER_ZONE_RADII["tsunami"] == DEFAULT_DANGER_ZONE_RADII["tsunami"]
    assert classify_severity("tsunami", 10.0, cfg.DANGER_ZONE_RADII) == Severity.CRITICAL
    assert classify_severity("earthquake", 90.0, cfg.DANGER_ZONE_RADII) == Severity.HIGH


def test_radii_override_from_env(monkeypatch):
    monkeypatch.setenv("DANGER_ZONE_RADII", '{"tsunami": {"critical": 40, "high": 150, "moderate": 400, "low": 800}}')
    cfg = Settings()
    assert cfg.DANGER_ZONE_RADII["tsunami"]["critical"] == 40
    assert cfg.DANGER_ZONE_RADII["earthquake"] == DEFAULT_DANGER_ZONE_RADII["earthquake"]


def test_invalid_settings_are_rejected():
    with pytest.raises(ValidationError):
        Settings(DANGER_ZONE_RADII={"tsunami": {"critical": 500, "high": 200, "moderate": 100, "low": 50}})
    with pytest.raises(ValidationError):
        Settings(MAX_DELIVERY_ATTEMPTS=0)


def test_api_keys_are_split_and_trimmed():
    assert Settings(API_KEYS=" ops-1, ,ops-2 ").api_keys() == {"ops-1", "ops-2"}
