class EmuError(Exception):
    pass


class ArgumentError(EmuError):
    pass


class ImageTooLargeError(EmuError):
    def __init__(self, size, capacity):
        super().__init__(f"Program image of {size} bytes exceeds memory capacity of {capacity} bytes")
        self.size = size
        self.capacity = capacity


class HaltException(EmuError):
    def __init__(self, reason, code=None):
        message = f"{reason}: {code}" if code is not None else reason
        super().__init__(message)
        self.reason = reason
        self.code = code


class EmuFault(EmuError):
    """Condition that stops the engine on the current instruction.

    ``pc``, ``raw`` and ``regs`` are filled in by the engine when the fault
    passes through it, so the failing step can be reproduced.
    """

    def __init__(self, message, pc=None, raw=None):
        super().__init__(message)
        self.message = message
        self.pc = pc
        self.raw = raw
        self.regs = None

    def __str__(self):
        parts = [self.message]
        if self.pc is not None:
            parts.append(f"pc=0x{self.pc:08x}")
        if self.raw is not None:
            parts.append(f"instr=0x{self.raw:08x}")
        return " ".join(parts)


class DecodeFault(EmuFault):
    pass


class MemoryBoundsFault(EmuFault):
    def __init__(self, addr, size, capacity, op="access"):
        super().__init__(f"Memory {op} out of range at 0x{addr:08x} (size {size}, capacity 0x{capacity:x})")
        self.addr = addr
        self.size = size
        self.capacity = capacity
        self.op = op


class RegisterIndexError(EmuFault, IndexError):
    def __init__(self, index):
        super().__init__(f"Register index out of range: {index}")
        self.index = index
