# --------------------------------------------------------------
# File: test_memory.py
# Description: Pruebas del borrado de buffers sensibles.
# --------------------------------------------------------------

from wallet_core.memory import wipe


def test_wipe_zeroes_bytearray():
    buffer = bytearray(b"secret-key-material")
    wipe(buffer)
    assert buffer == bytearray(len(b"secret-key-material"))


def test_wipe_accepts_memoryview_and_none():
    backing = bytearray(b"\xff" * 8)
    wipe(memoryview(backing)[2:6])
    assert backing == bytearray(b"\xff\xff\x00\x00\x00\x00\xff\xff")
    wipe(None)
