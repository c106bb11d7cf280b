"""
The logger port and its stdlib :py:mod:`logging` implementation.
"""

import logging
from collections import namedtuple
from typing import Protocol

from .states import LdapState

#: A log entry waiting to be written: free text detail plus the result state.
LdapLogMessage = namedtuple("LdapLogMessage", ["text", "state"])


class LdapLoggerPort(Protocol):
    """
    Where :py:class:`ldapusers.manipulator.LdapUserManipulator` reports the
    outcome of each operation.
    """

    def build_log_message(self, text: str, state: LdapState) -> LdapLogMessage: ...

    def write(self, message: LdapLogMessage) -> None: ...


class LdapLogger:
    """
    Write manipulator log entries to the ``django-ldapusers`` logger.

    Successes go out at ``INFO``, every error state at ``WARNING``, as
    ``ldapusers.<state> detail=<text>``.

    Keyword Args:
        logger: the :py:class:`logging.Logger` to write to

    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger if logger is not None else logging.getLogger("django-ldapusers")

    def build_log_message(self, text: str, state: LdapState) -> LdapLogMessage:
        return LdapLogMessage(text, state)

    def write(self, message: LdapLogMessage) -> None:
        level = logging.WARNING if message.state.is_error else logging.INFO
        self.logger.log(level, "ldapusers.%s detail=%s", message.state.value, message.text)
