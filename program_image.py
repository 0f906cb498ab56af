import os

from emu_faults import ArgumentError, ImageTooLargeError


class ProgramImage:
    """Read-only instruction stream, fetched one little-endian word at a time."""

    def __init__(self, data, name="image"):
        self.data = bytes(data)
        self.name = name

    def __len__(self):
        return len(self.data)

    def fetch(self, pc):
        # A partial trailing word counts as end of stream.
        if pc < 0 or pc + 4 > len(self.data):
            return None
        return int.from_bytes(self.data[pc:pc + 4], "little")


def load_image(path, memory_size=None):
    if not path:
        raise ArgumentError("No program image given")
    if not os.path.isfile(path):
        raise ArgumentError(f"File '{path}' not found.")
    try:
        with open(path, "rb") as handle:
            data = handle.read()
    except OSError as e:
        raise ArgumentError(f"Could not read '{path}': {e}") from e
    if memory_size is not None and len(data) > memory_size:
        raise ImageTooLargeError(len(data), memory_size)
    return ProgramImage(data, name=os.path.basename(path))
