"""구조화된 로깅 설정

structlog 프로세서 체인 (JSON 또는 콘솔 출력)
"""

import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO

import structlog

from sipnet.config.models import LoggingConfig

LOG_FILE = Path("logs") / "sipnet.log"

# 앞쪽에 고정 배치할 키 (나머지는 알파벳 순)
PRIORITY_KEYS = (
    "timestamp",
    "level",
    "event",
    "host",
    "port",
    "proto",
    "family",
    "local_addr",
    "destination",
)

_LEVELS = {
    "DEBUG": 10,
    "INFO": 20,
    "WARNING": 30,
    "ERROR": 40,
    "CRITICAL": 50,
}


def add_timestamp(logger: Any, method_name: str, event_dict: Dict) -> Dict:
    """로컬 시간 타임스탬프 (밀리초 3자리)"""
    now = datetime.now()
    event_dict["timestamp"] = now.strftime("%Y-%m-%dT%H:%M:%S") + f".{now.microsecond // 1000:03d}"
    return event_dict


def reorder_keys(logger: Any, method_name: str, event_dict: Dict) -> Dict:
    """키 재정렬 프로세서

    timestamp, level, event 다음에 주소/소켓 필드
    (host, port, proto, family, local_addr, destination)를 두고
    나머지는 알파벳 순으로 붙인다.
    """
    ordered = {key: event_dict[key] for key in PRIORITY_KEYS if key in event_dict}
    for key in sorted(set(event_dict) - set(PRIORITY_KEYS)):
        ordered[key] = event_dict[key]
    return ordered


def _build_processors(format_type: str) -> List[Any]:
    processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        add_timestamp,
        reorder_keys,
    ]

    if format_type == "json":
        # 한글 등 비ASCII 문자는 이스케이프 없이 출력
        def _dumps(event_dict, **kwargs):
            return json.dumps(event_dict, ensure_ascii=False, default=str)
        processors.append(structlog.processors.JSONRenderer(serializer=_dumps))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    return processors


def _open_output(output: str) -> TextIO:
    if output != "file":
        return sys.stdout
    LOG_FILE.parent.mkdir(exist_ok=True)
    # line buffering
    return open(LOG_FILE, "a", encoding="utf-8", buffering=1)


def setup_logging(level: str = "INFO", format_type: str = "json", output: str = "stdout") -> None:
    """로깅 초기화

    Args:
        level: DEBUG, INFO, WARNING, ERROR, CRITICAL
        format_type: json 또는 text
        output: stdout 또는 file (logs/sipnet.log)
    """
    structlog.configure(
        processors=_build_processors(format_type),
        wrapper_class=structlog.make_filtering_bound_logger(_log_level_to_int(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=_open_output(output)),
        cache_logger_on_first_use=False,
    )


def setup_logging_from_config(config: Optional[LoggingConfig] = None) -> None:
    """LoggingConfig 적용 (None이면 기본값)"""
    config = config or LoggingConfig()
    setup_logging(
        level=config.level.value,
        format_type=config.format.value,
        output=config.output,
    )


def _log_level_to_int(level: str) -> int:
    # 알 수 없는 레벨은 INFO
    return _LEVELS.get(level.upper(), _LEVELS["INFO"])


def get_logger(name: str) -> structlog.BoundLogger:
    """모듈 로거 반환

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("socket_bound", local_addr="10.0.0.1:5060", proto="udp")
    """
    return structlog.get_logger(name)


def log_with_context(**context: Any) -> structlog.BoundLogger:
    """컨텍스트가 바인딩된 로거 반환

    Example:
        >>> logger = log_with_context(local_addr="10.0.0.1")
        >>> logger.info("rtp_pair_allocated", start_port=4000)
    """
    return structlog.get_logger().bind(**context)
