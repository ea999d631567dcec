from pathlib import Path

import pytest

from unity_typetree.core.byte_source import BytesByteSource, FileByteSource, UnityPyByteSource
from unity_typetree.core.config import ReaderConfig
from unity_typetree.core.errors import ByteSourceIOError, TruncatedData

from builders import FakeEndianReader

DATA = bytes(range(256)) * 4


@pytest.fixture
def data_file(tmp_path: Path) -> Path:
    path = tmp_path / "data.bin"
    path.write_bytes(DATA)
    return path


def test_bytes_source_reads_ranges():
    source = BytesByteSource(DATA)

    assert source.size == len(DATA)
    assert source.read(10, 4) == DATA[10:14]
    assert source.read(len(DATA), 0) == b""


def test_bytes_source_rejects_reads_past_end():
    source = BytesByteSource(b"\x00\x01\x02")

    with pytest.raises(TruncatedData) as exc:
        source.read(2, 4)

    assert isinstance(exc.value, EOFError)


def test_file_source_matches_memory_across_window_boundaries(data_file: Path):
    memory = BytesByteSource(DATA)
    ranges = [(0, 4), (60, 8), (62, 4), (64, 16), (0, 200), (1000, 24), (5, 1)]

    with FileByteSource(data_file, buffer_size=64) as source:
        for offset, length in ranges:
            assert source.read(offset, length) == memory.read(offset, length)


def test_file_source_unbuffered(data_file: Path):
    with FileByteSource(data_file, config=ReaderConfig(buffer_size=0)) as source:
        assert source.read(3, 5) == DATA[3:8]


def test_file_source_truncated_read(data_file: Path):
    with FileByteSource(data_file) as source:
        with pytest.raises(TruncatedData):
            source.read(len(DATA) - 2, 4)


def test_file_source_missing_file(tmp_path: Path):
    with pytest.raises(ByteSourceIOError) as exc:
        FileByteSource(tmp_path / "missing.bin")

    assert isinstance(exc.value, OSError)


def test_file_source_closed(data_file: Path):
    source = FileByteSource(data_file)
    source.close()

    with pytest.raises(ByteSourceIOError):
        source.read(0, 1)


def test_unitypy_source_positions_reader():
    fake = FakeEndianReader(DATA)
    source = UnityPyByteSource(fake)

    assert source.size == len(DATA)
    assert source.read(100, 3) == DATA[100:103]
    assert source.read(0, 2) == DATA[0:2]
    with pytest.raises(TruncatedData):
        source.read(len(DATA), 1)
