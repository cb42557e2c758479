import logging
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional, TextIO
from eupay.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | [%(calc_id)s] | %(name)s:%(funcName)s:%(lineno)d - %(message)s"

# Id of the calculation being run; "-" outside of one
calc_id_ctx: ContextVar[Optional[str]] = ContextVar("calc_id", default=None)


def current_calc_id() -> str:
    return calc_id_ctx.get() or "-"


@contextmanager
def calculation_scope(calc_id: Optional[str] = None) -> Iterator[str]:
    """Tag every log record emitted inside the block with one calculation id."""
    cid = calc_id or uuid.uuid4().hex[:12]
    token = calc_id_ctx.set(cid)
    try:
        yield cid
    finally:
        calc_id_ctx.reset(token)


class CalcIDFilter(logging.Filter):
    def filter(self, record):
        record.calc_id = current_calc_id()
        return True


def configure_logging(level: str = "INFO", stream: Optional[TextIO] = None):
    """
    Install the eupay handler on the root logger.

    Calling it again swaps the previous eupay handler; handlers added by
    anything else (pytest's caplog, an embedding app) are left in place.
    """
    root = logging.getLogger()
    root.setLevel(level)

    for handler in [h for h in root.handlers if getattr(h, "eupay", False)]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.eupay = True
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(CalcIDFilter())
    root.addHandler(handler)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger("eupay")
