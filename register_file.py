from emu_faults import RegisterIndexError


NUM_REGISTERS = 32


class Register:
    __slots__ = ("value", "locked")

    def __init__(self, value=0, locked=False):
        self.value = value
        self.locked = locked


class RegisterFile:
    """32 general purpose registers, each with a write lock.

    x0 is locked at construction and stays locked, so it always reads 0.
    Writes to a locked register are dropped and reported through
    ``on_locked_write(index, value)`` instead of raising.
    """

    def __init__(self, on_locked_write=None):
        self.on_locked_write = on_locked_write
        self.regs = [Register() for _ in range(NUM_REGISTERS)]
        self.regs[0].locked = True

    def _check_index(self, index):
        if not 0 <= index < NUM_REGISTERS:
            raise RegisterIndexError(index)

    def read(self, index):
        self._check_index(index)
        return self.regs[index].value

    def write(self, index, value):
        self._check_index(index)
        reg = self.regs[index]
        if reg.locked:
            if self.on_locked_write:
                self.on_locked_write(index, value & 0xffffffff)
            return False
        reg.value = value & 0xffffffff
        return True

    def lock(self, index):
        self._check_index(index)
        self.regs[index].locked = True

    def unlock(self, index):
        self._check_index(index)
        if index == 0:
            raise ValueError("x0 is permanently locked")
        self.regs[index].locked = False

    def is_locked(self, index):
        self._check_index(index)
        return self.regs[index].locked

    def values(self):
        return [reg.value for reg in self.regs]

    def snapshot(self):
        return [(reg.value, reg.locked) for reg in self.regs]

    def __getitem__(self, index):
        return self.read(index)

    def __len__(self):
        return NUM_REGISTERS
