"""설정 로더

YAML 설정 파일 + 환경 변수 오버라이드 (SIPNET_<SECTION>_<KEY>)
"""

import os
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Tuple

import yaml
from pydantic import ValidationError

from .models import Config
from sipnet.common.exceptions import ConfigurationError


ENV_PREFIX = "SIPNET_"
CONFIG_PATH_ENV = "SIPNET_CONFIG_PATH"

# 환경 변수로 덮어쓸 수 있는 section (Config의 최상위 필드)
SECTIONS = tuple(Config.model_fields)

_TRUE_VALUES = ("true", "yes")
_FALSE_VALUES = ("false", "no")


def _read_yaml(path: Path) -> Dict[str, Any]:
    """YAML 파일을 매핑으로 읽기 (빈 파일은 빈 매핑)"""
    with open(path, 'r', encoding='utf-8') as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Top-level config must be a mapping: {path}")
    return data


def _env_overrides(environ: Dict[str, str]) -> Iterator[Tuple[str, str, str]]:
    """(section, key, raw value) 목록

    SIPNET_RTP_MIN_PORT=4000 -> ("rtp", "min_port", "4000")
    """
    for env_key, env_value in environ.items():
        if not env_key.startswith(ENV_PREFIX) or env_key == CONFIG_PATH_ENV:
            continue
        section, _, key = env_key[len(ENV_PREFIX):].lower().partition('_')
        if section in SECTIONS and key:
            yield section, key, env_value


class ConfigLoader:
    """설정 로더"""

    def __init__(self, config_path: Optional[str] = None):
        """
        Args:
            config_path: 설정 파일 경로 (None이면 SIPNET_CONFIG_PATH 또는 config/config.yaml)
        """
        self.config_path = config_path or self._get_default_config_path()
        self._config: Optional[Config] = None

    @staticmethod
    def _get_default_config_path() -> str:
        env_path = os.getenv(CONFIG_PATH_ENV)
        if env_path:
            return env_path
        return str(Path(__file__).resolve().parents[2] / "config" / "config.yaml")

    def load(self) -> Config:
        """설정 파일 로드 및 검증

        Returns:
            Config: 검증된 설정

        Raises:
            FileNotFoundError: 설정 파일 없음
            ConfigurationError: YAML 문법 오류, 최상위가 매핑이 아님
            ValidationError: 값 검증 실패
        """
        path = Path(self.config_path)
        if not path.exists():
            raise FileNotFoundError(
                f"Config file not found: {path}\n"
                f"Copy config/config.example.yaml to config/config.yaml."
            )

        raw_config = self._apply_env_overrides(_read_yaml(path))
        self._config = Config(**raw_config)
        return self._config

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """환경 변수 값으로 section 키를 덮어쓴다 (파일에 없는 section도 생성)"""
        for section, key, raw_value in _env_overrides(dict(os.environ)):
            if not isinstance(config.get(section), dict):
                config[section] = {}
            config[section][key] = self._convert_env_value(raw_value)
        return config

    @staticmethod
    def _convert_env_value(value: str) -> Any:
        """문자열 -> bool / int / float / str 순으로 변환"""
        lowered = value.lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False

        for cast in (int, float):
            try:
                return cast(value)
            except ValueError:
                continue
        return value

    @staticmethod
    def format_validation_error(error: ValidationError) -> str:
        """ValidationError를 읽기 쉬운 여러 줄 메시지로 변환"""
        lines = ["Config validation failed:"]
        for err in error.errors():
            location = ".".join(str(part) for part in err['loc'])
            lines.append(f"  - {location}: {err['msg']}")
        return "\n".join(lines)

    def reload(self) -> Config:
        return self.load()

    @property
    def config(self) -> Config:
        """마지막으로 로드한 설정

        Raises:
            RuntimeError: load() 호출 전
        """
        if self._config is None:
            raise RuntimeError("Config not loaded. Call load() first.")
        return self._config


def load_config(config_path: Optional[str] = None) -> Config:
    """ConfigLoader(config_path).load() 단축 함수"""
    return ConfigLoader(config_path).load()
