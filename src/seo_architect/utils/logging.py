"""Colored logging for pipeline runs and one-line stage status rendering."""

import logging
import sys
from datetime import datetime

from seo_architect.workflow.state import StageStatus

GREEN = "\x1b[32m"
RED = "\x1b[31m"
YELLOW = "\x1b[33m"
DIM = "\x1b[2m"
BOLD = "\x1b[1m"
RESET = "\x1b[0m"

# (color, glyph) per stage lifecycle state
STAGE_GLYPHS = {
    StageStatus.PENDING: (DIM, "·"),
    StageStatus.RUNNING: (DIM, "▸"),
    StageStatus.COMPLETED: (GREEN, "✓"),
    StageStatus.FAILED: (RED, "✗"),
}
BLOCKED_GLYPH = (YELLOW, "⊘")


def stage_line(
    name: str,
    status: StageStatus,
    detail: str = "",
    blocked: bool = False,
    width: int = 0,
) -> str:
    """Render ``  ✓ name detail`` for a stage.

    ``blocked`` marks a stage that never ran because a dependency failed.
    Details of failed or blocked stages are not dimmed.
    """
    color, glyph = BLOCKED_GLYPH if blocked else STAGE_GLYPHS[status]
    line = f"  {color}{glyph}{RESET} {name:<{width}}" if width else f"  {color}{glyph}{RESET} {name}"
    if not detail:
        return line
    if blocked or status is StageStatus.FAILED:
        return f"{line} {detail}"
    return f"{line} {DIM}{detail}{RESET}"


class PipelineFormatter(logging.Formatter):
    LEVEL_COLORS = {
        logging.DEBUG: DIM,
        logging.INFO: "",
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: RED + BOLD,
    }

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.now().strftime("%H:%M:%S")
        color = self.LEVEL_COLORS.get(record.levelno, "")
        return f"{DIM}[{ts}]{RESET} {color}{record.getMessage()}{RESET}"


def get_logger(name: str = "seo_architect", level: str | None = None) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(PipelineFormatter())
        logger.addHandler(handler)
    if level is None:
        from seo_architect.config import settings

        level = settings.log_level
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    return logger
