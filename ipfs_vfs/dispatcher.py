"""
Error / Flag Dispatcher.

The one place where session-layer failures turn into what filesystem
callers expect:

- QUIET          -> False, nothing logged (existence checks)
- QUIET | LINK   -> zeroed StatRecord, nothing logged (link-style lookups)
- otherwise      -> one warning logged, False
"""

import enum
import logging
from typing import Callable, TypeVar, Union

from .errors import IpfsError
from .models import StatRecord

log = logging.getLogger(__name__)

T = TypeVar("T")


class StatFlag(enum.IntFlag):
    NONE = 0
    QUIET = 1
    LINK = 2


def dispatch(error: Union[IpfsError, str], flags: int = StatFlag.NONE) -> Union[bool, StatRecord]:
    """Translate a failure into a falsy result according to flags."""
    flags = StatFlag(flags or 0)
    if flags & StatFlag.QUIET:
        if flags & StatFlag.LINK:
            return StatRecord.zero()
        return False

    log.warning(str(error))
    return False


def call(function: Callable[[], T], flags: int = StatFlag.NONE) -> Union[T, bool, StatRecord]:
    """Run function, routing any IpfsError it raises through dispatch()."""
    try:
        return function()
    except IpfsError as e:
        return dispatch(e, flags)
