import logging

import structlog

from casepay.config import Settings
from casepay.logging_config import configure_logging
from casepay.main import warn_if_callbacks_unverifiable
from casepay.server import build_parser
from casepay.utils.validators import calculate_filing_fee, normalize_case_type


def test_settings_defaults():
    settings = Settings(_env_file=None)
    assert settings.CASE_NUMBER_PREFIX == "CASE"
    assert settings.DEFAULT_CURRENCY == "INR"
    assert settings.SUPPORTED_CURRENCIES == ["INR"]
    assert settings.FILING_FEE_HIGH == 100000
    assert settings.FILING_FEE_STANDARD == 50000


def test_filing_fee_by_case_type():
    assert calculate_filing_fee("cybercrime", 100000, 50000) == 100000
    assert calculate_filing_fee("family", 100000, 50000) == 50000
    assert normalize_case_type("  Commercial ") == "commercial"
    assert normalize_case_type("made-up") == "civil"
    assert normalize_case_type(None) == "civil"


def test_server_parser_uses_settings_defaults():
    settings = Settings(_env_file=None, PORT=9100)
    args = build_parser(settings).parse_args([])
    assert args.port == 9100
    assert args.reload is False
    assert build_parser(settings).parse_args(["--port", "8001", "--reload"]).port == 8001


def test_configure_logging_writes_json_file(tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        configure_logging("INFO", json_logs=True, log_dir=str(tmp_path))
        structlog.get_logger("casepay.test").info("payment_logged", payment_id="p-1")
        for handler in root.handlers:
            handler.flush()

        content = (tmp_path / "server.log").read_text(encoding="utf-8")
        assert '"event": "payment_logged"' in content
        assert '"payment_id": "p-1"' in content
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
        structlog.reset_defaults()


def test_missing_key_secret_is_flagged_at_startup():
    assert warn_if_callbacks_unverifiable(Settings(_env_file=None, RAZORPAY_KEY_SECRET="")) is True
    assert warn_if_callbacks_unverifiable(Settings(_env_file=None, RAZORPAY_KEY_SECRET="s3cret")) is False
