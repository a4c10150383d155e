"""stderr handler using the human readable formatter."""

import logging
import os
import sys
from typing import Optional

from ..formatters import HumanFormatter


def supports_color(stream) -> bool:
    """ANSI colours only on a tty, honouring NO_COLOR and TERM=dumb."""
    isatty = getattr(stream, 'isatty', None)
    if isatty is None or not isatty():
        return False
    return not os.environ.get('NO_COLOR') and os.environ.get('TERM') != 'dumb'


class ConsoleHandler(logging.StreamHandler):

    def __init__(self, stream=None, use_colors: Optional[bool] = None, show_context: bool = True):
        stream = stream or sys.stderr
        super().__init__(stream)
        if use_colors is None:
            use_colors = supports_color(stream)
        self.setFormatter(HumanFormatter(use_colors=use_colors, show_context=show_context))
        self.setLevel(logging.INFO)
