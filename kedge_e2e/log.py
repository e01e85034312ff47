"""Colored, component-tagged logging"""

import logging
import sys
from datetime import datetime

from .config import Config


class Colors:
    """ANSI color codes for terminal output"""
    RED = '\033[0;31m'
    GREEN = '\033[0;32m'
    YELLOW = '\033[1;33m'
    CYAN = '\033[0;36m'
    NC = '\033[0m'  # No Color


def setup_logging(config: Config) -> None:
    """Setup logging configuration"""
    log_level = getattr(logging, config.log_level.upper(), logging.INFO)
    handlers = []
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file))
    else:
        handlers.append(logging.NullHandler())
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(levelname)s - [%(name)s:%(funcName)s] - %(message)s',
        handlers=handlers,
        force=True,
    )


class ComponentLogger:
    """Prints colored console lines and mirrors them into a module logger"""

    def __init__(self, name: str, stream=None):
        self.logger = logging.getLogger(name)
        self.stream = stream

    def _emit(self, color: str, message: str, component: str):
        timestamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S')
        print(f"{color}[{component}]{Colors.NC} {timestamp} - {message}",
              file=self.stream or sys.stdout)

    def info(self, message: str, component: str = "MAIN"):
        self._emit(Colors.GREEN, message, component)
        self.logger.info(f"[{component}] {message}")

    def warn(self, message: str, component: str = "MAIN"):
        self._emit(Colors.YELLOW, message, component)
        self.logger.warning(f"[{component}] {message}")

    def error(self, message: str, component: str = "MAIN"):
        self._emit(Colors.RED, message, component)
        self.logger.error(f"[{component}] {message}")

    def debug(self, message: str, component: str = "MAIN"):
        self.logger.debug(f"[{component}] {message}")


def get_logger(name: str) -> ComponentLogger:
    return ComponentLogger(name)
