from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass
class StepEvent:
    pc: int
    raw: int
    opcode: int
    mnemonic: str
    regs_before: List[int]
    regs_after: List[int]
    next_pc: int
    mem_writes: List[Tuple[int, int, int]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    fault: Optional[str] = None

    def changed_registers(self):
        return [
            (idx, before, after)
            for idx, (before, after) in enumerate(zip(self.regs_before, self.regs_after))
            if before != after
        ]


class ConsoleTracer:
    """Prints per-step trace lines and warnings.

    With ``verbose`` off only warnings are printed.
    """

    def __init__(self, verbose=True, stream=None):
        self.verbose = verbose
        self.stream = stream
        self.steps = 0

    def _print(self, text):
        print(text, file=self.stream)

    def on_step(self, event):
        self.steps += 1
        if not self.verbose:
            return
        self._print(
            f"[TRACE] pc=0x{event.pc:08x} instr=0x{event.raw:08x} "
            f"op=0x{event.opcode:02x} {event.mnemonic}"
        )
        for idx, before, after in event.changed_registers():
            self._print(f"        x{idx}: 0x{before:08x} -> 0x{after:08x}")
        for addr, size, value in event.mem_writes:
            self._print(f"        mem[0x{addr:08x}] <- 0x{value:0{size * 2}x} ({size} bytes)")
        if event.fault:
            self._print(f"        fault: {event.fault}")
        elif event.mnemonic == "ECALL":
            self._print("        program end")
        elif event.next_pc != ((event.pc + 4) & 0xffffffff):
            self._print(f"        jump -> 0x{event.next_pc:08x}")

    def on_warning(self, message):
        self._print(f"[WARN] {message}")
