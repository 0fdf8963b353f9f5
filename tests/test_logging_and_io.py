"""
common/logging_utils.py / common/io_utils.py のテスト
"""

from __future__ import annotations

from dataclasses import replace
import logging
import logging.handlers
import os
from unittest.mock import patch

import pytest

from common.io_utils import read_bytes, unique_path, write_bytes
from common.logging_utils import ComponentLogger, _parse_size, setup_logging
from config.environment import reset_env_config_cache
from config.settings import LoggingConfig, get_settings


class TestComponentLogger:
    def test_callback_receives_prefixed_message(self):
        lines: list[str] = []
        log = ComponentLogger("Ledger", logger=logging.getLogger("test.comp"), log_callback=lines.append)
        log.warning("weight rejected", pillar="Ads")
        assert lines == ["[WARN] Ledger: weight rejected (pillar=Ads)"]

    def test_compact_mode_demotes_info(self, caplog):
        log = ComponentLogger("Ledger", logger=logging.getLogger("test.comp"), compact_mode=True)
        with caplog.at_level(logging.DEBUG, logger="test.comp"):
            log.info("selection reloaded")
        assert caplog.records[-1].levelno == logging.DEBUG

    def test_create_reads_compact_logs(self):
        with patch.dict(os.environ, {"COMPACT_LOGS": "1"}):
            reset_env_config_cache()
            log = ComponentLogger.create("Ledger")
        assert log.compact_mode

    def test_failing_callback_is_contained(self):
        def bad(_msg: str) -> None:
            raise RuntimeError("ui gone")

        log = ComponentLogger("Ledger", logger=logging.getLogger("test.comp"), log_callback=bad)
        log.error("still logged")


@pytest.mark.parametrize(
    "text,expected",
    [("10 MB", 10 * 1024 * 1024), ("512 KB", 512 * 1024), ("1 GB", 1024**3), ("100", 100), ("junk", 10 * 1024 * 1024)],
)
def test_parse_size(text, expected):
    assert _parse_size(text) == expected


class TestSetupLogging:
    @pytest.fixture(autouse=True)
    def _restore_root(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        for h in list(root.handlers):
            root.removeHandler(h)
            h.close()
        for h in handlers:
            root.addHandler(h)
        root.setLevel(level)

    def test_daily_rotation(self, tmp_path):
        settings = replace(get_settings(), LOGS_DIR=tmp_path)
        root = setup_logging(settings)
        assert (tmp_path / settings.logging.filename).exists()
        assert any(isinstance(h, logging.handlers.TimedRotatingFileHandler) for h in root.handlers)

    def test_size_rotation(self, tmp_path):
        settings = replace(
            get_settings(),
            LOGS_DIR=tmp_path,
            logging=LoggingConfig(level="DEBUG", rotation="1 MB", filename="x.log"),
        )
        root = setup_logging(settings)
        handler = next(h for h in root.handlers if isinstance(h, logging.handlers.RotatingFileHandler))
        assert handler.maxBytes == 1024 * 1024
        assert root.level == logging.DEBUG


class TestIoUtils:
    def test_write_and_read(self, tmp_path):
        target = tmp_path / "nested" / "a.csv"
        write_bytes(target, b"a,b\n1,2")
        assert read_bytes(target) == b"a,b\n1,2"

    def test_read_missing_raises(self, tmp_path):
        with pytest.raises(OSError):
            read_bytes(tmp_path / "missing.csv")

    def test_unique_path(self, tmp_path):
        assert unique_path(tmp_path, "new.csv") == tmp_path / "new.csv"
        (tmp_path / "new.csv").write_text("x")
        (tmp_path / "new_1.csv").write_text("x")
        assert unique_path(tmp_path, "new.csv") == tmp_path / "new_2.csv"
