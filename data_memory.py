from emu_faults import ImageTooLargeError, MemoryBoundsFault


DEFAULT_MEMORY_SIZE = 1024 * 1024


class DataMemory:
    """Flat little-endian byte store used by loads and stores only."""

    def __init__(self, memory_size=DEFAULT_MEMORY_SIZE):
        if memory_size <= 0:
            raise ValueError(f"Invalid memory size: {memory_size}")
        self.memory_size = memory_size
        self.data = bytearray(memory_size)

    def _check_span(self, addr, size, op):
        if addr < 0 or addr + size > self.memory_size:
            raise MemoryBoundsFault(addr & 0xffffffff, size, self.memory_size, op)

    def read_bytes(self, addr, size):
        self._check_span(addr, size, "read")
        return bytes(self.data[addr:addr + size])

    def write_bytes(self, addr, data):
        self._check_span(addr, len(data), "write")
        self.data[addr:addr + len(data)] = data

    def read_memory(self, addr, size):
        return int.from_bytes(self.read_bytes(addr, size), "little")

    def write_memory(self, addr, size, value):
        value &= (1 << (size * 8)) - 1
        self.write_bytes(addr, value.to_bytes(size, "little"))

    def load_byte(self, addr):
        return self.read_memory(addr, 1)

    def load_half(self, addr):
        return self.read_memory(addr, 2)

    def load_word(self, addr):
        return self.read_memory(addr, 4)

    def store_byte(self, addr, val):
        self.write_memory(addr, 1, val)

    def store_half(self, addr, val):
        self.write_memory(addr, 2, val)

    def store_word(self, addr, val):
        self.write_memory(addr, 4, val)

    def load_image(self, image):
        if len(image) > self.memory_size:
            raise ImageTooLargeError(len(image), self.memory_size)
        self.data[:len(image)] = image
