import math
from abc import ABC, abstractmethod

from s3minfo.types import Pattern, Instrument

__all__ = ['Song']


class Song(ABC):
    """
    A song is a collection of patterns played in a specific sequence, possibly with repetitions.
    In addition, songs also store the instruments that are used to play the notes.
    Songs are loaded from a module file; their duration is found by simulating the playback.
    """

    def __init__(self):

        self.songname = ""
        self.patterns: list[Pattern] = []
        self.pattern_seq: list[int] = []  # The order table: sequence of pattern indices making up the song.
        self.instruments: list[Instrument] = []

        self.file_size = 0  # Size in bytes of the module file the song was loaded from.

    '''
    -------------------------------------
    SONG
    -------------------------------------
    '''

    def set_songname(self, song_name: str):
        self.songname = song_name

    @abstractmethod
    def timestamp(self) -> list[list[list[float, int, int]]]:
        """
        Annotates the time of each row in the song, taking into account the speed and tempo changes.

        :return: A list where each element is a list corresponding to a pattern in the sequence,
                 empty if that position is never played.
                 Within each list, each row is a triple (timestamp [s], speed, tempo).
        """
        pass

    def get_song_duration(self) -> float:
        """
        Returns the duration of the song in seconds.

        :return: The song duration in seconds.
        """

        # positions are played in sequence order, so the last played row is in the last non-empty one
        played = [p for p in self.timestamp() if len(p) > 0]
        if len(played) == 0:
            return 0.
        return played[-1][-1][0]

    @property
    def duration(self) -> float:
        return self.get_song_duration()

    @property
    def bitrate(self) -> float:
        """
        Average bitrate of the module file, in kbit/s.
        This is the file size spread over the playback duration, not an audio bitrate.
        """
        duration = self.duration
        if duration <= 0 or not math.isfinite(duration):
            return 0.
        return self.file_size / duration / 1000.

    @property
    def comment(self) -> str:
        """
        Trackers have no comment field; composers write their messages in the instrument names.
        Returns all the non-empty instrument names, separated by '/'.
        """
        names = [inst.display_name.strip() for inst in self.instruments]
        return '/'.join(name for name in names if len(name) > 0)

    '''
    -------------------------------------
    PATTERNS
    -------------------------------------
    '''

    @abstractmethod
    def get_effective_row_count(self, pattern: int) -> int:
        """
        Returns the effective number of rows that get played in a pattern.
        Accounts for position jumps, loops, and breaks.

        :param pattern: The pattern index (within the song sequence).
        :return: The effective number of rows that gets played in the pattern.
        """
        pass

    @abstractmethod
    def get_pattern_duration(self, pattern: int) -> float:
        """
        Returns the duration of a pattern in seconds.

        :param pattern: The pattern index (within the song sequence).
        :return: The pattern duration in seconds.
        """
        pass

    def get_pattern(self, pattern: int) -> Pattern:
        """
        Returns the pattern played at the given position of the song sequence.

        :param pattern: The pattern index (within the song sequence).
        :return: The Pattern object.
        """
        if pattern < 0 or pattern >= len(self.pattern_seq):
            raise IndexError(f"Invalid pattern index {pattern}")

        p = self.pattern_seq[pattern]
        if p >= len(self.patterns):
            raise IndexError(f"Sequence position {pattern} holds no pattern (value {p})")

        return self.patterns[p]

    '''
    -------------------------------------
    INSTRUMENTS
    -------------------------------------
    '''

    def get_instrument(self, instrument_idx: int) -> Instrument:

        if instrument_idx <= 0 or instrument_idx > len(self.instruments):
            raise IndexError(f"Invalid instrument index {instrument_idx}")

        return self.instruments[instrument_idx - 1]
