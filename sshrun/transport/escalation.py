"""Spot sudo prompts and rejections in streamed command output.

sudo writes its password prompt into the same stream as the command's
own output, so the only way to answer it without a terminal is to match
each chunk against the known prompt and failure messages as it arrives.
"""

from __future__ import annotations

import logging
import re
import shlex
from typing import Protocol

from sshrun.core.errors import EscalateError

SUDO_PROMPT = "[sudo] sshrun needs to run as another user, password: "


class SendChannel(Protocol):
    def sendall(self, data: bytes) -> None: ...


def sudo_prefix(run_as: str, prompt: str = SUDO_PROMPT) -> str:
    """Return the sudo invocation that wraps a command run as ``run_as``."""
    return shlex.join(["sudo", "-S", "-u", run_as, "-p", prompt])


class EscalationDetector:
    """Reacts to sudo output on a channel.

    The detector keeps no state between chunks; it only holds what it needs
    to answer: the prompt, the authenticating user and the sudo password.

    Args:
        user: User the session authenticated as (the one sudo reports on).
        password: Sudo password, or None if none was configured.
        target_uri: Target description used in error messages.
        logger: Where to log the rejection text.
        prompt: Prompt string passed to ``sudo -p``.
    """

    def __init__(
        self,
        *,
        user: str,
        password: str | None,
        target_uri: str,
        logger: logging.Logger | None = None,
        prompt: str = SUDO_PROMPT,
    ) -> None:
        self._user = user
        self._password = password
        self._target_uri = target_uri
        self._logger = logger or logging.getLogger(__name__)
        self._prompt = prompt
        self._denied = re.compile(rf"^{re.escape(user)} is not in the sudoers file\.", re.MULTILINE)
        self._bad_password = re.compile(r"^Sorry, try again\.", re.MULTILINE)

    def is_prompt(self, chunk: str) -> bool:
        return self._prompt in chunk.splitlines()

    def handle(self, channel: SendChannel, chunk: str) -> bool:
        """Inspect one chunk of output.

        Returns:
            True if the chunk was the password prompt and has been answered,
            so it must not be captured as output. False for ordinary output.

        Raises:
            EscalateError: NO_PASSWORD if prompted without a password,
                SUDO_DENIED if the user may not sudo, BAD_PASSWORD if sudo
                rejected the password.
        """
        # sudo may send "Sorry, try again." and the next prompt in one chunk.
        if self._denied.search(chunk):
            self._logger.debug(chunk)
            raise EscalateError(
                f"User {self._user} does not have sudo permission on {self._target_uri}",
                "SUDO_DENIED",
            )

        if self._bad_password.search(chunk):
            self._logger.debug(chunk)
            raise EscalateError(
                f"Sudo password for user {self._user} not recognized on {self._target_uri}",
                "BAD_PASSWORD",
            )

        if self.is_prompt(chunk):
            if self._password is None:
                raise EscalateError(
                    f"Sudo password for user {self._user} was not provided for {self._target_uri}",
                    "NO_PASSWORD",
                )
            channel.sendall(f"{self._password}\n".encode())
            return True

        return False
