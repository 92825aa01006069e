from __future__ import annotations

"""Parser for violation lines posted by the moderation bot.

Each violation occupies one line of a log-channel message and carries the
player name, the player's numeric UID, the guild tag and a free-text reason,
separated by pipes. Lines that do not match are ignored.

Example
-------
>>> from violation_reporter.parser import parse_violation_line
>>> rec = parse_violation_line('Player: Jon Doe | UID 123456789 | ABC_1 | cheating')
>>> (rec.name, rec.user_id, rec.guild_tag)
('Jon Doe', '123456789', 'ABC_1')
"""

import re
from dataclasses import dataclass
from typing import Optional


_LINE_RE = re.compile(
    r"Player:\s*(?P<name>.+?)\s*\|\s*"
    r"UID\s*(?P<uid>\d{6,20})\s*\|\s*"
    r"(?P<tag>[A-Za-z0-9_]+)\s*\|\s*"
    r"(?P<reason>.+)",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class ViolationRecord:
    """A single violation extracted from a log line.

    Attributes
    ----------
    name : str
        Player name as written in the log.
    user_id : str
        Numeric player identifier (6 to 20 digits), kept as text.
    guild_tag : str
        Tag of the guild the player belongs to.
    """
    name: str
    user_id: str
    guild_tag: str


def parse_violation_line(line: str) -> Optional[ViolationRecord]:
    """Parse a single line into a ``ViolationRecord``.

    Parameters
    ----------
    line : str
        Raw line text.

    Returns
    -------
    ViolationRecord or None
        The record if the line matches the expected pattern; otherwise
        ``None``.

    Notes
    -----
    Expected format resembles::

        Player: <Name> | UID <Digits> | <GuildTag> | <Reason>

    """
    line = line.strip()
    if not line:
        return None
    m = _LINE_RE.search(line)
    if not m:
        return None
    return ViolationRecord(
        name=m.group("name").strip(),
        user_id=m.group("uid").strip(),
        guild_tag=m.group("tag").strip(),
    )


def parse_violations(text: str) -> list[ViolationRecord]:
    """Extract all violation records from a multi-line message, in order."""
    out: list[ViolationRecord] = []
    for line in (text or "").split("\n"):
        rec = parse_violation_line(line)
        if rec:
            out.append(rec)
    return out


def message_line_id(message_id: int | str, index: int) -> str:
    """Build the idempotency key for the ``index``-th record of a message."""
    return f"{message_id}-{index}"
