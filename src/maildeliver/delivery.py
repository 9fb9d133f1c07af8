"""Stream a message from input into a maildir and file it by its headers."""

from __future__ import annotations

import logging
import os
import secrets
import socket
import time
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from .classifier import DEFAULT_RULES, HeaderRule, HeaderScanner
from .config import DeliveryConfig
from .maildir import (
    MaildirError,
    destination_dir,
    ensure_maildir_structure,
    inbox_tmp_dir,
    resolve_extension,
)
from .types import DeliveryResult

LOGGER = logging.getLogger(__name__)

DEFAULT_HOSTNAME = "localhost"
FILE_MODE = 0o600
READ_CHUNK = 64 * 1024


class DeliveryError(RuntimeError):
    """Raised when a message cannot be delivered."""


class EntropyError(DeliveryError):
    """Raised when the random part of a delivery filename cannot be drawn."""


class StreamError(DeliveryError):
    """Raised when reading the message from input fails."""


@dataclass(frozen=True)
class Line:
    """A piece of input with its line terminator removed.

    Lines longer than the read chunk arrive in several pieces; every piece
    after the first is ``continued`` and only the last one is ``terminated``.
    """

    data: bytes
    terminated: bool
    continued: bool = False


def iter_lines(stream: BinaryIO, *, chunk_size: int = READ_CHUNK) -> Iterator[Line]:
    """Yield input lines, reading at most ``chunk_size`` bytes at a time.

    A trailing carriage return is dropped together with the newline, also when
    the two are split across chunks. A final line without a newline is closed
    by an empty terminated continuation.
    """

    continued = False
    held_cr = False
    while True:
        try:
            chunk = stream.readline(chunk_size)
        except (OSError, ValueError) as exc:
            raise StreamError(f"Error reading from stdin: {exc}") from exc
        if not chunk:
            if continued:
                yield Line(b"", terminated=True, continued=True)
            return
        if held_cr and not chunk.startswith(b"\n"):
            chunk = b"\r" + chunk
        held_cr = False
        terminated = chunk.endswith(b"\n")
        if terminated:
            data = chunk[:-1]
            if data.endswith(b"\r"):
                data = data[:-1]
        elif chunk.endswith(b"\r"):
            # Wait for the next chunk to tell whether a newline follows.
            data = chunk[:-1]
            held_cr = True
        else:
            data = chunk
        yield Line(data, terminated=terminated, continued=continued)
        continued = not terminated


class _Echo:
    """Best-effort copy of the input to the caller's output stream."""

    def __init__(self, stream: BinaryIO | None) -> None:
        self._stream = stream

    def write(self, data: bytes) -> None:
        if self._stream is None:
            return
        try:
            self._stream.write(data)
        except (OSError, ValueError) as exc:
            self._disable(exc)

    def flush(self) -> None:
        if self._stream is None:
            return
        try:
            self._stream.flush()
        except (OSError, ValueError) as exc:
            self._disable(exc)

    def _disable(self, exc: Exception) -> None:
        LOGGER.warning("Echo output failed, delivering without it: %s", exc)
        self._stream = None


class MailDelivery:
    """Deliver one message into a maildir using the tmp/ then new/ protocol."""

    def __init__(
        self,
        maildir: Path,
        *,
        hostname: str | None = None,
        hostname_fallback: str | None = None,
        rules: Sequence[HeaderRule] = DEFAULT_RULES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._maildir = maildir.expanduser()
        guessed = hostname or _system_hostname(hostname_fallback)
        self._hostname = _maildir_safe_hostname(guessed)
        self._rules = tuple(rules)
        self._clock = clock

    @property
    def hostname(self) -> str:
        return self._hostname

    def generate_filename(self) -> str:
        """Return ``<seconds>.<8 hex digits>.<host>`` for a new delivery."""

        try:
            token = secrets.randbelow(1 << 32)
        except (OSError, NotImplementedError) as exc:
            raise EntropyError(f"Error generating random number: {exc}") from exc
        return f"{int(self._clock())}.{token:08x}.{self._hostname}"

    def deliver(self, source: BinaryIO, echo: BinaryIO | None = None) -> DeliveryResult:
        """Copy ``source`` into the maildir and move it to its category.

        Every input line is mirrored to ``echo``. On any failure before the
        final rename the partial file stays in tmp/ and is never visible in a
        new/ directory.
        """

        filename = self.generate_filename()
        tmp_path = inbox_tmp_dir(self._maildir) / filename
        scanner = HeaderScanner(self._rules)

        with self._create_tmp(tmp_path) as handle:
            self._copy(source, handle, scanner, _Echo(echo), tmp_path)
            try:
                handle.flush()
                os.fsync(handle.fileno())
            except OSError as exc:
                raise MaildirError(f"Error writing {tmp_path}: {exc}") from exc

        category = scanner.category
        destination = destination_dir(self._maildir, category) / filename
        try:
            tmp_path.rename(destination)
        except OSError as exc:
            raise DeliveryError(f"Error moving {tmp_path} to {destination}: {exc}") from exc

        LOGGER.info(
            "Delivered %s to %s",
            filename,
            category.value if category else "inbox",
        )
        return DeliveryResult(filename=filename, category=category, path=destination)

    def _copy(
        self,
        source: BinaryIO,
        handle: BinaryIO,
        scanner: HeaderScanner,
        echo: _Echo,
        tmp_path: Path,
    ) -> None:
        for line in iter_lines(source):
            piece = line.data + b"\n" if line.terminated else line.data
            echo.write(piece)
            try:
                handle.write(piece)
            except OSError as exc:
                raise MaildirError(f"Error writing {tmp_path}: {exc}") from exc
            if not line.continued:
                scanner.feed(line.data)
        echo.flush()

    @staticmethod
    def _create_tmp(path: Path) -> BinaryIO:
        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, FILE_MODE)
        except OSError as exc:
            raise MaildirError(f"Error creating {path}: {exc}") from exc
        return os.fdopen(fd, "wb")


def deliver_message(
    config: DeliveryConfig,
    source: BinaryIO,
    echo: BinaryIO | None = None,
) -> DeliveryResult:
    """Prepare the mailbox described by ``config`` and deliver one message."""

    ensure_maildir_structure(config.maildir, config.categories)
    root = resolve_extension(config.maildir, config.extension)
    if root != config.maildir.expanduser():
        LOGGER.debug("Extension %r retargets delivery to %s", config.extension, root)
        ensure_maildir_structure(root, config.categories)

    delivery = MailDelivery(root, hostname_fallback=config.hostname_fallback)
    return delivery.deliver(source, echo)


def _system_hostname(fallback: str | None) -> str:
    try:
        name = socket.gethostname()
    except OSError:
        name = ""
    return name.strip() or (fallback or "").strip() or DEFAULT_HOSTNAME


def _maildir_safe_hostname(hostname: str) -> str:
    # "/" would add a path component and ":" starts the maildir info section.
    return hostname.replace("/", "\\057").replace(":", "\\072")


__all__ = [
    "DeliveryError",
    "EntropyError",
    "Line",
    "MailDelivery",
    "StreamError",
    "deliver_message",
    "iter_lines",
]
