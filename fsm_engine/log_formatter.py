"""
Console logging for machine lifecycle lines.
"""

import logging
import sys
from datetime import datetime
from typing import Optional, TextIO

from .config import FSMSettings


class TransitionLogFormatter(logging.Formatter):
    """Formatter that highlights the [SM:name] lifecycle tags"""

    # Color codes
    GREEN = '\033[32m'
    RED = '\033[31m'
    YELLOW = '\033[33m'
    CYAN = '\033[36m'
    RESET = '\033[0m'

    TAG_COLORS = {
        'INIT:': CYAN,
        'TRANSITION:': GREEN,
        'REJECTED:': YELLOW,
        'RESET': CYAN,
    }

    LEVEL_COLORS = {
        'WARNING': YELLOW,
        'ERROR': RED,
        'CRITICAL': RED,
    }

    def __init__(self, use_color: bool = True, stream: Optional[TextIO] = None):
        super().__init__()
        stream = stream or sys.stdout
        self.use_color = use_color and hasattr(stream, 'isatty') and stream.isatty()

    def format(self, record):
        msg = record.getMessage()
        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S')
        timestamp_ms = f"{timestamp},{int(record.msecs):03d}"
        level = record.levelname

        if self.use_color:
            msg = self._color_tags(msg)
            if level in self.LEVEL_COLORS:
                level = f"{self.LEVEL_COLORS[level]}{level}{self.RESET}"

        line = f"{timestamp_ms} - {record.name} - {level} - {msg}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line

    def _color_tags(self, msg: str) -> str:
        if not msg.startswith('[SM:'):
            return msg
        for tag, color in self.TAG_COLORS.items():
            if f"] {tag}" in msg:
                return msg.replace(f"] {tag}", f"] {color}{tag}{self.RESET}", 1)
        return msg


def configure_logging(settings: Optional[FSMSettings] = None,
                      level: Optional[str] = None,
                      use_color: bool = True,
                      stream: Optional[TextIO] = None) -> logging.Handler:
    """
    Attach a console handler to the ``fsm_engine`` logger.

    The level comes from ``level``, then ``settings.log_level``, then the
    FSM_* environment. Calling it again replaces the previous handler.
    """
    if level is None:
        settings = settings or FSMSettings.from_env()
        level = settings.log_level

    stream = stream or sys.stdout
    handler = logging.StreamHandler(stream)
    handler.setFormatter(TransitionLogFormatter(use_color=use_color, stream=stream))
    handler._fsm_console = True

    logger = logging.getLogger('fsm_engine')
    for existing in [h for h in logger.handlers if getattr(h, '_fsm_console', False)]:
        logger.removeHandler(existing)

    logger.setLevel(getattr(logging, level.upper()))
    logger.addHandler(handler)
    return handler
