import pytest


def s3m_cell(channel: int, command: int = None, info: int = 0,
             note: int = None, instrument: int = 0, volume: int = None) -> bytes:
    """Packs a single channel event the way ScreamTracker stores it."""

    what = channel & 0x1F
    body = b''
    if note is not None:
        what |= 0x20
        body += bytes([note, instrument])
    if volume is not None:
        what |= 0x40
        body += bytes([volume])
    if command is not None:
        what |= 0x80
        body += bytes([command, info])
    return bytes([what]) + body


def pack_pattern(rows: list, tail: bytes = b'') -> bytes:
    """Packs up to 64 rows (lists of packed cells); missing rows are left empty."""

    packed = b''
    for r in range(64):
        if r < len(rows):
            packed += b''.join(rows[r])
        packed += b'\x00'
    return (len(packed) + 2).to_bytes(2, byteorder='little') + packed + tail


def pack_instrument(type_: int, filename: str, display_name: str) -> bytes:
    """Packs an 80-byte instrument header."""

    data = bytes([type_])
    data += filename.encode('latin-1').ljust(12, b'\x00')
    data += bytes(35)  # sample pointer, length, loop points, volume, flags, C2 speed...
    if type_ == 0:
        # garbage where a display name would be; empty slots must not show it
        data += b'IGNORED NAME'.ljust(28, b'\x00')
        data += bytes(4)
    else:
        data += display_name.encode('latin-1').ljust(28, b'\x00')
        data += b'SCRS'
    return data


def build_s3m(title: str = 'test song', orders=(0,), patterns=None, instruments=(),
              speed: int = 6, tempo: int = 125, version: int = 0x1320, flags: int = 0,
              channels=None, signature: bytes = b'SCRM', pattern_tail: bytes = b'') -> bytes:
    """
    Builds a complete S3M file in memory.

    :param patterns: A list of patterns, each a list of rows of packed cells; None stores a null pointer.
    :param instruments: A list of (type, filename, display name) triples.
    :param pattern_tail: Extra bytes appended after each packed pattern.
    """

    if patterns is None:
        patterns = [[]]
    if channels is None:
        channels = list(range(8)) + [255] * 24

    header = bytearray(96)
    header[:28] = title.encode('latin-1')[:28].ljust(28, b'\x00')
    header[28] = 0x1A
    header[29] = 16
    header[32:34] = len(orders).to_bytes(2, byteorder='little')
    header[34:36] = len(instruments).to_bytes(2, byteorder='little')
    header[36:38] = len(patterns).to_bytes(2, byteorder='little')
    header[38:40] = flags.to_bytes(2, byteorder='little')
    header[40:42] = version.to_bytes(2, byteorder='little')
    header[42:44] = (2).to_bytes(2, byteorder='little')
    header[44:48] = signature
    header[48] = 64
    header[49] = speed
    header[50] = tempo
    header[51] = 0xB0
    header[64:96] = bytes(channels)

    data = bytearray(header)
    data += bytes(orders)

    pointers_offset = len(data)
    data += bytes(2 * (len(instruments) + len(patterns)))

    pointers = []

    for type_, filename, display_name in instruments:
        data += bytes(-len(data) % 16)
        pointers.append(len(data) // 16)
        data += pack_instrument(type_, filename, display_name)

    for rows in patterns:
        if rows is None:
            pointers.append(0)
            continue
        data += bytes(-len(data) % 16)
        pointers.append(len(data) // 16)
        data += pack_pattern(rows, pattern_tail)

    for i, ptr in enumerate(pointers):
        data[pointers_offset + 2 * i:pointers_offset + 2 * i + 2] = ptr.to_bytes(2, byteorder='little')

    return bytes(data)


def row_time(speed: int = 6, tempo: int = 125) -> float:
    return 60 * (speed / (24 * tempo))


@pytest.fixture
def make_s3m():
    return build_s3m


@pytest.fixture
def cell():
    return s3m_cell


@pytest.fixture
def rt():
    return row_time
