"""로깅 설정 단위 테스트"""

import json

import pytest

from sipnet.config.models import LogFormat, LogLevel, LoggingConfig
from sipnet.common.logger import (
    get_logger,
    log_with_context,
    reorder_keys,
    setup_logging,
    setup_logging_from_config,
)


@pytest.fixture(autouse=True)
def restore_logging():
    """capsys 스트림에 묶인 로거 설정을 테스트 후 되돌림"""
    yield
    setup_logging(level="DEBUG", format_type="text")


class TestReorderKeys:
    """키 재정렬 프로세서 테스트"""

    def test_priority_then_alphabetical(self):
        event_dict = {"zeta": 1, "port": 5060, "event": "socket_bound", "alpha": 2,
                      "timestamp": "t", "level": "info", "host": "10.0.0.1"}

        ordered = reorder_keys(None, "info", event_dict)

        assert list(ordered) == ["timestamp", "level", "event", "host", "port", "alpha", "zeta"]


class TestSetupLogging:
    """setup_logging 테스트"""

    def test_json_output(self, capsys):
        setup_logging(level="INFO", format_type="json")

        get_logger("test").info("socket_bound", local_addr="127.0.0.1:5060", note="한글")

        line = capsys.readouterr().out.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "socket_bound"
        assert record["level"] == "info"
        assert record["local_addr"] == "127.0.0.1:5060"
        assert "timestamp" in record
        # 비ASCII 문자 그대로 출력
        assert "한글" in line

    def test_level_filtering(self, capsys):
        setup_logging(level="WARNING", format_type="json")

        logger = get_logger("test")
        logger.info("hidden")
        logger.warning("shown")

        out = capsys.readouterr().out
        assert "hidden" not in out
        assert "shown" in out

    def test_text_output(self, capsys):
        setup_logging(level="DEBUG", format_type="text")

        log_with_context(host="10.0.0.1").debug("rtp_port_busy", port=4000)

        out = capsys.readouterr().out
        assert "rtp_port_busy" in out
        assert "host=10.0.0.1" in out

    def test_from_config(self, capsys):
        setup_logging_from_config(LoggingConfig(level=LogLevel.ERROR, format=LogFormat.JSON))

        logger = get_logger("test")
        logger.warning("filtered")
        logger.error("routing_failed")

        out = capsys.readouterr().out
        assert "filtered" not in out
        assert json.loads(out.strip().splitlines()[-1])["event"] == "routing_failed"
