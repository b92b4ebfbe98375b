"""
로깅 시스템
실행별 로그 파일 + Rich 콘솔 출력
"""

import glob
import logging
import os
from datetime import datetime
from typing import Dict, Optional
from rich.logging import RichHandler
from rich.console import Console

console = Console()

DEFAULT_LOG_DIR = "~/.k3s-auth-agent/logs"
LOGGER_NAME = "k3s_auth_agent"
KEEP_RUNS = 20

FILE_FORMAT = logging.Formatter(
    '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)


def prune_logs(log_dir: str, keep: int = KEEP_RUNS):
    """오래된 실행 로그 삭제 (최근 keep개 실행만 유지)"""
    for prefix in ("agent_", "error_"):
        files = sorted(glob.glob(os.path.join(log_dir, f"{prefix}*.log")))
        for path in files[:-keep] if keep > 0 else files:
            os.remove(path)


class AgentLogger:
    """에이전트 로거

    실행마다 agent_*.log(전체)와 error_*.log(ERROR 이상) 파일을 새로 만든다.
    """

    def __init__(self, log_dir: str = DEFAULT_LOG_DIR, log_level: str = "INFO", debug: bool = False):
        self.log_dir = os.path.expanduser(log_dir)
        level = logging.DEBUG if debug else getattr(logging, log_level.upper())

        os.makedirs(self.log_dir, exist_ok=True)
        prune_logs(self.log_dir, KEEP_RUNS - 1)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        self.log_file = os.path.join(self.log_dir, f"agent_{timestamp}.log")
        self.error_file = os.path.join(self.log_dir, f"error_{timestamp}.log")

        self.logger = logging.getLogger(LOGGER_NAME)
        self.logger.setLevel(level)
        for handler in list(self.logger.handlers):
            handler.close()
            self.logger.removeHandler(handler)

        self._add_file_handler(self.log_file, level)
        self._add_file_handler(self.error_file, logging.ERROR)

        rich_handler = RichHandler(
            console=console,
            rich_tracebacks=True,
            show_time=False,
            show_path=debug
        )
        rich_handler.setLevel(level)
        self.logger.addHandler(rich_handler)

    def _add_file_handler(self, path: str, level: int):
        handler = logging.FileHandler(path, encoding='utf-8')
        handler.setLevel(level)
        handler.setFormatter(FILE_FORMAT)
        self.logger.addHandler(handler)

    def debug(self, message: str):
        self.logger.debug(message)

    def info(self, message: str):
        self.logger.info(message)

    def warning(self, message: str):
        self.logger.warning(message)

    def error(self, message: str):
        self.logger.error(message)

    def exception(self, message: str):
        """트레이스백 포함"""
        self.logger.exception(message)

    def get_log_files(self) -> Dict[str, str]:
        return {
            "main_log": self.log_file,
            "error_log": self.error_file,
        }


_logger: Optional[AgentLogger] = None


def get_logger() -> AgentLogger:
    """로거 인스턴스 (초기화 전이면 기본 설정으로 생성)"""
    global _logger
    if _logger is None:
        _logger = AgentLogger()
    return _logger


def init_logger(log_dir: str, log_level: str, debug: bool) -> AgentLogger:
    """설정값으로 로거 재초기화"""
    global _logger
    _logger = AgentLogger(log_dir, log_level, debug)
    return _logger
