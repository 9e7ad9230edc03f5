"""
Data types for ScreamTracker 3 modules.

This module contains the data classes filled in by the S3M loader:
- Event, EventShape: one packed channel cell of a pattern row
- Pattern: the decoded rows of a pattern
- Instrument: sample/AdLib instrument header fields
"""

import enum

__all__ = ['EventShape', 'Event', 'Pattern', 'Instrument']


class EventShape(enum.IntFlag):
    """
    The optional fields announced by the leading "what" byte of a packed event.
    The lower five bits of that byte hold the channel number, the upper three say what follows.
    """

    NONE = 0x00
    NOTE_INSTRUMENT = 0x20  # 2 bytes: note, instrument
    VOLUME = 0x40           # 1 byte: volume column
    EFFECT = 0x80           # 2 bytes: command, info

    @classmethod
    def from_what(cls, what: int) -> 'EventShape':
        return cls(what & 0xE0)

    @property
    def n_bytes(self) -> int:
        """Number of bytes following the "what" byte."""
        n = 0
        if self & EventShape.NOTE_INSTRUMENT:
            n += 2
        if self & EventShape.VOLUME:
            n += 1
        if self & EventShape.EFFECT:
            n += 2
        return n


class Event:
    """
    An event is a single channel cell in a pattern row.
    Only the effect command and its parameter (called 'info' in S3M) are kept;
    note, instrument and volume are skipped while decoding.
    """

    def __init__(self, channel: int = 0, command: int = 0, info: int = 0):
        self.channel = channel
        self.command = command
        self.info = info

    def __repr__(self):
        s = f"{self.channel:02d}:"
        if self.command == 0:
            s += '---'
        else:
            # S3M effects are shown as letters, A=1, B=2, ...
            s += f"{chr(ord('A') + self.command - 1)}{self.info:02X}"
        return s

    def __eq__(self, other):
        if not isinstance(other, Event):
            return NotImplemented
        return (self.channel, self.command, self.info) == (other.channel, other.command, other.info)

    def has_effect(self) -> bool:
        return self.command != 0


class Pattern:
    """
    A pattern is a page of rows, and is part of a song.
    Unlike MOD/XM patterns, S3M rows are sparse: each row only lists the channels
    that have something stored in the packed pattern data.
    """

    def __init__(self, n_rows: int = 64):
        self.n_rows = n_rows

        # use it as rows[row] -> list of events, in stream order
        self.rows: list[list[Event]] = [[] for _ in range(n_rows)]

    def __len__(self) -> int:
        return self.n_rows

    def __getitem__(self, row: int) -> list[Event]:
        return self.rows[row]


class Instrument:
    """
    An S3M instrument header.

    Type 0 is an empty slot, 1 is a digital sample, 2-7 are AdLib instruments.
    The display name (shown in the tracker's instrument list) is only stored
    for non-empty instruments; the internal DOS filename is always there.
    """

    def __init__(self, type_: int = 0, filename: str = '', display_name: str = ''):
        self.type = type_
        self.filename = filename
        self.display_name = display_name

    def __repr__(self):
        return f"Instrument(type={self.type}, filename='{self.filename}', display_name='{self.display_name}')"

    def is_empty(self) -> bool:
        """Return True if this is an unused instrument slot."""
        return self.type == 0
