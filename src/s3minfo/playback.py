"""
Playback simulation for S3M modules.

The duration of a module is not stored anywhere in the file: it is obtained by walking
the order table like a player would, row by row, while keeping track of the speed and
tempo changes, order jumps, pattern breaks and pattern loops found in the pattern data.
Only those effects change the timing; every other effect is ignored.
"""

import enum
import math
import warnings

from s3minfo.types import Pattern

__all__ = ['RowControl', 'RowTiming', 'Playback', 'PlaybackSimulator']


class RowControl(enum.Enum):
    """What the player does after a row has been played."""

    CONTINUE = 0        # go on with the next row (or the next order at the end of the pattern)
    JUMP_TO_ORDER = 1   # Bxx, restart at row 0 of another order
    BREAK_AT_ROW = 2    # Cxx, go to a given row of the next order
    END_OF_SONG = 3     # no playable pattern left in the order table


class RowTiming:
    """A row that has been played, with the time at which it ends."""

    def __init__(self, order: int, pattern: int, row: int, time: float, speed: int, tempo: int):
        self.order = order
        self.pattern = pattern
        self.row = row
        self.time = time
        self.speed = speed
        self.tempo = tempo

    def __repr__(self):
        return f"RowTiming(order={self.order}, pattern={self.pattern}, row={self.row}, " \
               f"time={self.time:.3f}, speed={self.speed}, tempo={self.tempo})"


class Playback:
    """
    The outcome of a simulated playback.
    Every played row is listed in play order; time spent repeating pattern loops is
    credited to the order where the loop ends.
    """

    def __init__(self):
        self.duration = 0.
        self.rows: list[RowTiming] = []
        self.loop_time: dict[int, float] = {}

    def rows_in_order(self, order: int) -> list[RowTiming]:
        return [r for r in self.rows if r.order == order]

    def order_duration(self, order: int) -> float:
        """
        Returns the time spent in the given order, loop repetitions included.

        :param order: The order index (within the song sequence).
        :return: The duration in seconds, 0 if the order was never played.
        """
        # a row ends at r.time and starts where the previously played row ended
        total = 0.
        prev = 0.
        for r in self.rows:
            if r.order == order:
                total += r.time - prev
            prev = r.time
        return total


class PlaybackSimulator:
    """
    Plays an order table through its patterns and accumulates the time taken by each row.

    The simulation state (position, speed, tempo, loop bookkeeping) lives in the simulator
    and is reset at the beginning of every run().
    """

    ROWS = 64
    END_OF_SONG = 255

    # Effect commands (A=1, B=2, ...)
    EFFECT_SET_SPEED = 0x01      # Axx
    EFFECT_ORDER_JUMP = 0x02     # Bxx
    EFFECT_PATTERN_BREAK = 0x03  # Cxx
    EFFECT_EXTENDED = 0x13       # Sxy
    EFFECT_SET_TEMPO = 0x14      # Txx

    # Extended sub-effects (high nibble of the info byte)
    EXTENDED_PATTERN_LOOP = 0xB  # SBx

    # Upper bound on the number of rows a single run may play
    MAX_PLAYED_ROWS = 256 * 64 * 4

    def __init__(self, pattern_seq: list[int], patterns: list[Pattern], initial_speed: int, initial_tempo: int):
        self.pattern_seq = pattern_seq
        self.patterns = patterns
        self.initial_speed = initial_speed
        self.initial_tempo = initial_tempo

        self.speed = initial_speed
        self.tempo = initial_tempo
        self.previous_tempo = initial_tempo
        self.inside_loop = False
        self.loop_duration = 0.
        self.playback = Playback()

    @staticmethod
    def get_row_duration(speed: int, tempo: int) -> float:
        """
        Returns the duration of a single row in seconds.
        Each row lasts 'speed' ticks, and a tick lasts 2.5 / tempo seconds.

        :param speed: Ticks per row.
        :param tempo: The tempo in BPM.
        :return: The row duration in seconds (infinite for a zero tempo).
        """
        if tempo == 0:
            return math.inf
        return 60 * (speed / (24 * tempo))

    def run(self) -> Playback:
        """
        Simulates the playback of the whole order table.

        :return: The Playback record, holding the total duration and the timing of each row.
        """

        self.speed = self.initial_speed
        self.tempo = self.initial_tempo
        self.previous_tempo = self.tempo
        self.inside_loop = False
        self.loop_duration = 0.
        self.playback = Playback()

        order = 0
        row = 0
        n_played = 0

        while order < len(self.pattern_seq):

            control, order, pattern = self._resolve_order(order)
            if control == RowControl.END_OF_SONG:
                break

            control = RowControl.CONTINUE
            target = None

            while row < PlaybackSimulator.ROWS:

                n_played += 1
                if n_played > PlaybackSimulator.MAX_PLAYED_ROWS:
                    warnings.warn(f"Playback stopped after {PlaybackSimulator.MAX_PLAYED_ROWS} rows "
                                  f"at order {order}, row {row}.")
                    return self.playback

                control, target = self._play_row(order, pattern, row)
                if control != RowControl.CONTINUE:
                    break
                row += 1

            if control == RowControl.CONTINUE:
                order += 1
                row = 0
            else:
                order, row = target

        return self.playback

    def _resolve_order(self, order: int) -> tuple[RowControl, int, int]:
        """
        Finds the pattern to play at the given order, skipping the entries that do not point
        to a stored pattern. An end-of-song marker restores the initial speed and tempo, so that
        the next sub-song does not inherit the timing of the previous one.

        :return: A tuple (control, order, pattern); control is END_OF_SONG if nothing is left to play.
        """

        last_pattern = len(self.patterns) - 1
        pattern = self.pattern_seq[order]

        while pattern > last_pattern and order < len(self.pattern_seq) - 1:
            if pattern == PlaybackSimulator.END_OF_SONG:
                self.speed = self.initial_speed
                self.tempo = self.initial_tempo
            order += 1
            pattern = self.pattern_seq[order]

        if pattern > last_pattern:
            return RowControl.END_OF_SONG, order, pattern

        return RowControl.CONTINUE, order, pattern

    def _play_row(self, order: int, pattern: int, row: int) -> tuple[RowControl, tuple[int, int] | None]:
        """
        Applies the effects of a row, then accounts for its duration.
        Effects are processed in channel-stream order and the first accepted jump or break
        ends the processing of the row.

        :return: A tuple (control, target); target is the (order, row) to continue from after a jump or break.
        """

        control = RowControl.CONTINUE
        target = None

        for event in self.patterns[pattern][row]:

            if not event.has_effect():
                continue

            if event.command == PlaybackSimulator.EFFECT_SET_SPEED:
                if event.info > 0:
                    self.speed = event.info

            elif event.command == PlaybackSimulator.EFFECT_SET_TEMPO:
                self._set_tempo(event.info)

            elif event.command == PlaybackSimulator.EFFECT_ORDER_JUMP:
                # backward jumps would loop the song forever
                if event.info > order:
                    control = RowControl.JUMP_TO_ORDER
                    target = (min(event.info, len(self.pattern_seq) - 1), 0)

            elif event.command == PlaybackSimulator.EFFECT_PATTERN_BREAK:
                control = RowControl.BREAK_AT_ROW
                target = (order + 1, min(event.info, PlaybackSimulator.ROWS - 1))

            elif event.command == PlaybackSimulator.EFFECT_EXTENDED:
                if event.info >> 4 == PlaybackSimulator.EXTENDED_PATTERN_LOOP:
                    self._pattern_loop(order, event.info & 0x0F)

            if control != RowControl.CONTINUE:
                break

        row_duration = PlaybackSimulator.get_row_duration(self.speed, self.tempo)
        self.playback.duration += row_duration
        if self.inside_loop:
            self.loop_duration += row_duration

        self.playback.rows.append(
            RowTiming(order, pattern, row, self.playback.duration, self.speed, self.tempo))

        return control, target

    def _set_tempo(self, info: int):
        # T00 undoes the last slide; only one previous value is remembered
        if info > 0x20:
            self.tempo = info
        elif info == 0:
            self.tempo = self.previous_tempo
        else:
            self.previous_tempo = self.tempo
            if info < 0x10:
                self.tempo -= info
            else:
                self.tempo += info - 0x10

    def _pattern_loop(self, order: int, repeat: int):
        # SB0 marks the loop start, SBx plays the rows since the mark x more times
        if repeat == 0:
            self.loop_duration = 0.
            self.inside_loop = True
        else:
            extra = self.loop_duration * repeat
            self.playback.duration += extra
            self.playback.loop_time[order] = self.playback.loop_time.get(order, 0.) + extra
            self.inside_loop = False
