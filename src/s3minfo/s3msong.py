import warnings

from s3minfo.song import Song
from s3minfo.types import Event, EventShape, Instrument, Pattern
from s3minfo.playback import Playback, PlaybackSimulator

__all__ = ['S3MSong']


class S3MSong(Song):
    """
    ScreamTracker 3 module.

    Patterns are stored packed: each row lists only the channels that hold data, and ends
    with a zero byte. Instruments and patterns are reached through tables of 16-byte
    paragraph pointers that follow the order table.
    """

    ROWS = 64
    CHANNELS = 32
    HEADER_SIZE = 96
    TITLE_LEN = 28
    SIGNATURE = b'SCRM'
    SIGNATURE_OFFSET = 44
    POINTER_UNIT = 16  # pointers are stored in paragraphs

    # channel table values 30 and up (255 most of the time) mark unused channels
    CHANNEL_UNUSED = 30

    # ScreamTracker defaults, used when the header stores zero
    DEFAULT_SPEED = 6
    DEFAULT_TEMPO = 125

    # upper nibble of the 'Cwt/v' header field
    TRACKER_NAMES = {
        0x1: 'ScreamTracker',
        0x2: 'Imago Orpheus',
        0x3: 'Impulse Tracker',
        0x4: 'Schism Tracker',
        0x5: 'OpenMPT',
        0xC: 'Camoto/libgamemusic',
    }

    def __init__(self):
        super().__init__()

        # S3M header fields
        self.channel_table: list[int] = []
        self.flags = 0
        self.tracker_version = 0
        self.tracker_name = ""
        self.initial_speed = S3MSong.DEFAULT_SPEED
        self.initial_tempo = S3MSong.DEFAULT_TEMPO

        self.tag_exists = False  # True once a valid S3M header has been read
        self.playback = Playback()

        self._data = None  # raw file contents, kept for rewriting the title

    @property
    def n_channels(self) -> int:
        return len(self.channel_table)

    @property
    def n_active_channels(self) -> int:
        return sum(1 for c in self.channel_table if c < S3MSong.CHANNEL_UNUSED)

    '''
    -------------------------------------
    IMPORT AND EXPORT
    -------------------------------------
    '''

    def load_from_file(self, fname: str, verbose: bool = True):
        """
        Loads a song from an S3M file.

        :param fname: The path to the module file.
        :param verbose: False for silent loading.
        :return: None.
        """

        if verbose:
            print(f'Loading {fname}... ', end='', flush=True)

        with open(fname, 'rb') as s3m_file:
            data = bytearray(s3m_file.read())

        self._load(data, verbose)

        if verbose:
            print('done.')

    def load_from_bytes(self, data: bytes, verbose: bool = False):
        """
        Loads a song from the contents of an S3M file.

        :param data: The complete module file.
        :param verbose: True to get warnings about unusual header values.
        :return: None.
        """

        self._load(bytearray(data), verbose)

    def _load(self, data: bytearray, verbose: bool):

        # start from an empty song, so that a failed load leaves nothing of the previous one
        self.__dict__.update(S3MSong().__dict__)

        # decode into a new song; it replaces this one only once everything has been read
        song = S3MSong()

        instrument_pointers, pattern_pointers = song._load_header(data, verbose)

        song.instruments = [song._load_instrument(data, i, ptr) for i, ptr in enumerate(instrument_pointers)]
        song.patterns = [song._load_pattern(data, p, ptr) for p, ptr in enumerate(pattern_pointers)]

        song.file_size = len(data)
        song._data = data

        song.playback = PlaybackSimulator(song.pattern_seq, song.patterns,
                                          song.initial_speed, song.initial_tempo).run()

        self.__dict__.update(song.__dict__)

    def _load_header(self, data: bytearray, verbose: bool) -> tuple[list[int], list[int]]:
        """
        Reads the fixed-size header, then the channel, order and pointer tables that follow it.

        :return: A tuple (instrument pointers, pattern pointers), as absolute file offsets.
        """

        # ----------------------------
        # Load fixed-size header data
        # ----------------------------

        if len(data) < S3MSong.HEADER_SIZE:
            raise NotImplementedError(f"Not an S3M module! The file is only {len(data)} bytes long.")

        magic_string = bytes(data[S3MSong.SIGNATURE_OFFSET:S3MSong.SIGNATURE_OFFSET + 4])
        if magic_string != S3MSong.SIGNATURE:
            raise NotImplementedError(f"Not an S3M module! Magic string: {magic_string}.")

        self.tag_exists = True

        # the title is a C string inside a fixed 28-byte field
        self.songname = data[:S3MSong.TITLE_LEN].split(b'\x00')[0].decode('latin-1').strip()

        # bytes 28-31 are reserved (0x1A marker, file type, 2 unused)

        n_orders = int.from_bytes(data[32:34], byteorder='little', signed=False)
        n_instruments = int.from_bytes(data[34:36], byteorder='little', signed=False)
        n_patterns = int.from_bytes(data[36:38], byteorder='little', signed=False)

        self.flags = int.from_bytes(data[38:40], byteorder='little', signed=False)
        self.tracker_version = int.from_bytes(data[40:42], byteorder='little', signed=False)
        self.tracker_name = S3MSong.TRACKER_NAMES.get((self.tracker_version & 0xF000) >> 12, '')

        # bytes 42-43: sample format, 48: global volume

        self.initial_speed = data[49]
        self.initial_tempo = data[50]

        if self.initial_speed == 0:
            if verbose:
                warnings.warn(f"Initial speed is 0, using {S3MSong.DEFAULT_SPEED} instead.")
            self.initial_speed = S3MSong.DEFAULT_SPEED

        if self.initial_tempo == 0:
            if verbose:
                warnings.warn(f"Initial tempo is 0, using {S3MSong.DEFAULT_TEMPO} instead.")
            self.initial_tempo = S3MSong.DEFAULT_TEMPO

        # bytes 51-61: master volume, ultra click removal, default pan flag, reserved
        # bytes 62-63: pointer to special custom data, not used by trackers

        # ----------------------------
        # Load the tables
        # ----------------------------

        idx = 64
        tables_end = idx + S3MSong.CHANNELS + n_orders + 2 * n_instruments + 2 * n_patterns
        if tables_end > len(data):
            raise ValueError(f"Truncated S3M header: tables end at offset {tables_end}, "
                             f"the file is {len(data)} bytes long.")

        self.channel_table = list(data[idx:idx + S3MSong.CHANNELS])
        idx += S3MSong.CHANNELS

        self.pattern_seq = list(data[idx:idx + n_orders])
        idx += n_orders

        def read_pointers(start: int, count: int) -> list[int]:
            return [S3MSong.POINTER_UNIT * int.from_bytes(data[start + 2 * i:start + 2 * i + 2],
                                                          byteorder='little', signed=False)
                    for i in range(count)]

        instrument_pointers = read_pointers(idx, n_instruments)
        idx += 2 * n_instruments

        pattern_pointers = read_pointers(idx, n_patterns)

        return instrument_pointers, pattern_pointers

    @staticmethod
    def _load_instrument(data: bytearray, instrument_idx: int, offset: int) -> Instrument:
        """
        Reads the instrument header at the given file offset.
        Sample and AdLib instruments share the offsets of the fields read here.

        :param data: The complete module file.
        :param instrument_idx: The instrument index, 0-based, for error messages.
        :param offset: Absolute offset of the instrument header.
        :return: The Instrument object.
        """

        if offset + 13 > len(data):
            raise ValueError(f"Instrument {instrument_idx + 1} at offset {offset} lies past the end of the file.")

        inst = Instrument()
        inst.type = data[offset]
        inst.filename = data[offset + 1:offset + 13].decode('latin-1').replace('\x00', '').strip()

        # empty slots do not store a display name
        if inst.type > 0:

            name_offset = offset + 13 + 35
            if name_offset + 28 > len(data):
                raise ValueError(f"Instrument {instrument_idx + 1} at offset {offset} is truncated.")

            # C string inside a fixed 28-byte field, followed by the 'SCRS'/'SCRI' tag
            name_bytes = data[name_offset:name_offset + 28]
            inst.display_name = name_bytes.split(b'\x00')[0].decode('latin-1')

        return inst

    @staticmethod
    def _load_pattern(data: bytearray, pattern_idx: int, offset: int) -> Pattern:
        """
        Unpacks the pattern stored at the given file offset.

        Each row is a list of packed events closed by a zero byte. An event starts with a
        'what' byte: the channel in the lower 5 bits, then one flag for each optional field.
        Decoding stops after the 64th row, whatever the packed size says.

        :param data: The complete module file.
        :param pattern_idx: The pattern index, for error messages.
        :param offset: Absolute offset of the pattern; 0 means an empty pattern.
        :return: The Pattern object.
        """

        pat = Pattern(S3MSong.ROWS)

        if offset == 0:
            return pat

        # skip the packed size: the end of the pattern is found by counting rows
        byte_idx = offset + 2
        r = 0

        while r < S3MSong.ROWS:

            if byte_idx >= len(data):
                raise ValueError(f"Pattern {pattern_idx} is truncated at row {r}.")

            what = data[byte_idx]
            byte_idx += 1

            if what == 0:  # end of row
                r += 1
                continue

            shape = EventShape.from_what(what)
            if byte_idx + shape.n_bytes > len(data):
                raise ValueError(f"Pattern {pattern_idx} is truncated at row {r}.")

            event = Event(channel=what & 0x1F)

            if shape & EventShape.NOTE_INSTRUMENT:
                byte_idx += 2
            if shape & EventShape.VOLUME:
                byte_idx += 1
            if shape & EventShape.EFFECT:
                event.command = data[byte_idx]
                event.info = data[byte_idx + 1]
                byte_idx += 2

            pat.rows[r].append(event)

        return pat

    def save_to_file(self, fname: str, verbose: bool = True):
        """
        Saves the song to an S3M file.
        Only the title can be changed: the rest of the file is written back as it was loaded.

        :param fname: Complete file path.
        :param verbose: False for silent saving.
        :return: None.
        """

        if self._data is None:
            raise ValueError("Can't save a song that was not loaded from an S3M file.")

        if verbose:
            print(f'Saving to {fname}... ', end='', flush=True)

        def str_to_bytes_padded(s: str, max_len: int) -> bytes:
            r = s.encode('latin-1', errors='replace')
            if len(r) > max_len:  # truncate
                r = r[:max_len]
            else:
                r += bytes(max_len - len(r))
            return r

        data = bytearray(self._data)
        data[:S3MSong.TITLE_LEN] = str_to_bytes_padded(self.songname, S3MSong.TITLE_LEN)

        with open(fname, 'wb') as s3m_file:
            s3m_file.write(bytes(data))

        self._data = data

        if verbose:
            print('done.')

    '''
    -------------------------------------
    SONG
    -------------------------------------
    '''

    def timestamp(self) -> list[list[list[float, int, int]]]:
        """
        Annotates the time of each row in the song, taking into account the speed and tempo changes,
        order jumps, pattern breaks and pattern loops.

        :return: A list with one element per entry of the sequence, each a list of the rows played there
                 (empty for skipped or unreached entries). Each played row is a triple
                 (timestamp [s], speed, tempo); the timestamp is the time at which the row ends.
        """

        annotated_song = [[] for _ in self.pattern_seq]

        for r in self.playback.rows:
            annotated_song[r.order].append([r.time, r.speed, r.tempo])

        return annotated_song

    '''
    -------------------------------------
    PATTERNS
    -------------------------------------
    '''

    def get_effective_row_count(self, pattern: int) -> int:
        """
        Returns the effective number of rows that get played in a pattern.
        Accounts for position jumps and breaks; loop repetitions are not counted.

        :param pattern: The pattern index (within the song sequence).
        :return: The effective number of rows that gets played in the pattern, 0 if it is skipped.
        """
        if pattern < 0 or pattern >= len(self.pattern_seq):
            raise IndexError(f"Invalid pattern index {pattern}")

        return len(self.playback.rows_in_order(pattern))

    def get_pattern_duration(self, pattern: int) -> float:
        """
        Returns the duration of a pattern in seconds, loop repetitions included.

        :param pattern: The pattern index (within the song sequence).
        :return: The pattern duration in seconds, 0 if it is skipped.
        """
        if pattern < 0 or pattern >= len(self.pattern_seq):
            raise IndexError(f"Invalid pattern index {pattern}")

        return self.playback.order_duration(pattern)
