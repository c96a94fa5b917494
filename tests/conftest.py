"""pytest 설정 파일

공통 fixtures 및 테스트 설정
"""

import socket
import tempfile
from pathlib import Path

import pytest
import yaml


@pytest.fixture
def temp_config_file():
    """임시 설정 파일 fixture"""
    config_data = {
        "logging": {
            "level": "DEBUG",
            "format": "text",
        },
        "sip": {
            "default_port": 5060,
            "fallback_port_start": 5062,
            "fallback_port_end": 5100,
            "transport": "udp",
        },
        "rtp": {
            "min_port": 30000,
            "max_port": 31000,
            "port_range": 2,
            "tries": 500,
        },
    }

    with tempfile.NamedTemporaryFile(
        mode='w',
        suffix='.yaml',
        delete=False,
        encoding='utf-8'
    ) as f:
        yaml.dump(config_data, f)
        temp_path = f.name

    yield temp_path

    Path(temp_path).unlink(missing_ok=True)


@pytest.fixture
def invalid_config_file():
    """잘못된 설정 파일 fixture"""
    config_data = {
        "sip": {
            "default_port": 99999,  # 65535 초과
        },
        "rtp": {
            "min_port": 20000,
            "max_port": 10000,  # max < min
        }
    }

    with tempfile.NamedTemporaryFile(
        mode='w',
        suffix='.yaml',
        delete=False,
        encoding='utf-8'
    ) as f:
        yaml.dump(config_data, f)
        temp_path = f.name

    yield temp_path

    Path(temp_path).unlink(missing_ok=True)


@pytest.fixture
def occupy_udp_ports():
    """지정한 UDP 포트를 점유하는 fixture (테스트 종료 시 해제)

    점유할 수 없는 포트가 있으면 테스트를 skip 한다.
    """
    held = []

    def _occupy(ip, ports):
        for port in ports:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            try:
                sock.bind((ip, port))
            except OSError as e:
                sock.close()
                pytest.skip(f"UDP port {port} not available on this host: {e}")
            held.append(sock)
        return held

    yield _occupy

    for sock in held:
        sock.close()
