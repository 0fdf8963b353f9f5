"""
common/exceptions.py / common/error_handling.py のテスト
例外階層・エラーコード・handle_command_error・handle_exceptions デコレータ
"""

import logging
from unittest.mock import Mock

import pytest

from common.error_handling import (
    CapacityExceededError,
    ConfigError,
    ExportError,
    FilterError,
    LoadError,
    handle_command_error,
)
from common.exceptions import (
    CodedError,
    ConfiguratorError,
    DataValidationError,
    ErrorCode,
    handle_exceptions,
    log_with_code,
)
from common.logging_utils import ComponentLogger


class TestHierarchy:
    """例外階層の検証"""

    @pytest.mark.parametrize("cls", [LoadError, CapacityExceededError, FilterError, ExportError])
    def test_all_derive_from_config_error(self, cls):
        assert issubclass(cls, ConfigError)
        assert issubclass(cls, ConfiguratorError)
        assert issubclass(cls, CodedError)

    def test_data_validation_error(self):
        assert isinstance(DataValidationError("x"), ConfiguratorError)
        assert isinstance(DataValidationError("x"), ValueError)

    def test_codes(self):
        assert LoadError.code == ErrorCode.DATA_LOAD_FAILED == "DATA001"
        assert CapacityExceededError.code == ErrorCode.CALC_CAPACITY_EXCEEDED == "CALC003"
        assert FilterError.code == ErrorCode.CALC_FILTER_ERROR
        assert ExportError.code == ErrorCode.SYSTEM_EXPORT_ERROR

    def test_context_in_str_but_not_in_notice(self):
        err = LoadError("template.csv を読み込めません", path="data/template.csv")
        assert str(err) == "template.csv を読み込めません (path=data/template.csv)"
        assert err.notice == "template.csv を読み込めません"
        assert err.context == {"path": "data/template.csv"}

    def test_capacity_attributes(self):
        err = CapacityExceededError("full", pillar="Ads", used=20, budget=20)
        assert (err.pillar, err.used, err.budget) == ("Ads", 20, 20)
        assert "pillar=Ads" in str(err)

    def test_coded_error(self):
        err = CodedError(ErrorCode.DATA_LOAD_FAILED, "empty", {"rows": 0})
        assert str(err) == "[DATA001] empty"
        assert err.details == {"rows": 0}


class TestHandleCommandError:
    def test_config_error_logs_warning_with_code(self, caplog):
        log = ComponentLogger("Configurator", logger=logging.getLogger("test.cmd"))
        with caplog.at_level(logging.WARNING, logger="test.cmd"):
            handle_command_error(log, "template load", LoadError("missing"), path="x.csv")
        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert "[DATA001] template load failed: missing" in record.getMessage()
        assert "path=x.csv" in record.getMessage()

    def test_unexpected_error_logs_traceback(self, caplog):
        callback = Mock()
        log = ComponentLogger("Configurator", logger=logging.getLogger("test.cmd"), log_callback=callback)
        try:
            raise RuntimeError("boom")
        except RuntimeError as exc:
            with caplog.at_level(logging.ERROR, logger="test.cmd"):
                handle_command_error(log, "export", exc)
        record = caplog.records[-1]
        assert record.levelno == logging.ERROR
        assert record.exc_info is not None
        callback.assert_called_once()
        assert "RuntimeError" in callback.call_args[0][0]


class TestHandleExceptionsDecorator:
    def test_returns_default_on_error(self, caplog):
        @handle_exceptions(default="fallback")
        def broken():
            raise ValueError("bad")

        with caplog.at_level(logging.ERROR):
            assert broken() == "fallback"
        assert "broken" in caplog.text

    def test_reraise(self):
        @handle_exceptions(reraise=True)
        def broken():
            raise KeyError("k")

        with pytest.raises(KeyError):
            broken()

    def test_passes_through_result(self):
        @handle_exceptions(default=None)
        def ok(x):
            return x * 2

        assert ok(4) == 8


def test_log_with_code(caplog):
    logger = logging.getLogger("test.code")
    with caplog.at_level(logging.INFO, logger="test.code"):
        log_with_code(logger, logging.INFO, ErrorCode.SYSTEM_CONFIG_ERROR, "bad config", {"key": "x"})
    assert "[SYS001] bad config | Details: {'key': 'x'}" in caplog.text
