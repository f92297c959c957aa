import logging

from couponsync.config import clamp_timeout, load_prompts, load_settings
from couponsync.utils.logs import configure_logging


def test_timeout_is_clamped():
    assert clamp_timeout("5") == 15.0
    assert clamp_timeout("600") == 180.0
    assert clamp_timeout("45") == 45.0
    assert clamp_timeout(None) == 30.0
    assert clamp_timeout("fast") == 30.0


def test_settings_from_environment(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("ADDREVENUE_API_TOKEN", "token")
    monkeypatch.setenv("OFFER_REGION", "no")
    monkeypatch.setenv("BATCH_SIZE", "0")
    monkeypatch.setenv("LOGGING_ENABLED", "false")
    monkeypatch.setenv("API_TIMEOUT", "200")
    monkeypatch.delenv("AWIN_API_TOKEN", raising=False)
    settings = load_settings()
    assert settings.addrevenue_token == "token"
    assert settings.awin_token is None
    assert settings.region == "NO"
    assert settings.batch_size == 1
    assert settings.logging_enabled is False
    assert settings.api_timeout == 180.0
    assert settings.addrevenue_channel_id


def test_custom_prompts_file(tmp_path):
    path = tmp_path / "prompts.yml"
    path.write_text("coupon_title: T {{ description }}\nbrand_description: B\nwhy_we_love: W\n")
    prompts = load_prompts(path)
    assert prompts.coupon_title == "T {{ description }}"
    assert prompts.why_we_love == "W"


def test_disabled_logging_silences_package_logger():
    configure_logging(enabled=False)
    try:
        assert not logging.getLogger("couponsync.logic.sync").isEnabledFor(logging.ERROR)
    finally:
        configure_logging(enabled=True)
        logging.getLogger("couponsync").propagate = True
