# rv32emu.py
# RV32I subset emulator: fetch/decode/execute loop over a flat binary image,
# final register report and register dump file.

import struct
import sys

from cpu_core import CPUCore
from data_memory import DataMemory
from emu_config import DECODE_FAULT_SKIP, EmuConfig, load_config
from emu_faults import (
    ArgumentError,
    DecodeFault,
    EmuFault,
    HaltException,
    ImageTooLargeError,
)
from instr_decode import decode, to_s32
from program_image import ProgramImage, load_image
from register_file import NUM_REGISTERS, RegisterFile
from step_trace import ConsoleTracer, StepEvent


HALT_ECALL = "ecall"
HALT_END_OF_STREAM = "end_of_stream"
HALT_FAULT = "fault"
HALT_STEP_LIMIT = "step_limit"

_FINAL_HALTS = (HALT_ECALL, HALT_END_OF_STREAM, HALT_FAULT)

_REGISTER_RECORD = struct.Struct("<Ii")


class RV32Emu:
    """One program, one register file, one data memory, one PC.

    ``tracer`` is any object with optional ``on_step(event)`` and
    ``on_warning(message)`` methods. The emulator never prints; all
    presentation goes through the tracer, and execution is identical
    with or without one.
    """

    def __init__(self, image, config=None, tracer=None):
        if not isinstance(image, ProgramImage):
            image = ProgramImage(image)
        self.config = config or EmuConfig()
        self.image = image
        self.tracer = tracer
        self.branch_imm = self.config.branch_imm
        self.regs = RegisterFile(on_locked_write=self._locked_write)
        self.memory = DataMemory(self.config.memory_size)
        if len(image) > self.memory.memory_size:
            raise ImageTooLargeError(len(image), self.memory.memory_size)
        if self.config.seed_memory:
            self.memory.load_image(image.data)
        self.pc = 0
        self.instr_count = 0
        self.halt_reason = None
        self.fault = None
        self.mem_writes = []
        self._warnings = []
        self.core = CPUCore(self)

    def _notify(self, name, *args):
        handler = getattr(self.tracer, name, None) if self.tracer is not None else None
        if handler is not None:
            handler(*args)

    def _warn(self, message):
        self._warnings.append(message)
        self._notify("on_warning", message)

    def _locked_write(self, index, value):
        self._warn(f"Attempted write of 0x{value:08x} to locked register x{index} ignored.")

    def _halt(self, reason, code=None):
        self.halt_reason = reason
        raise HaltException(reason, code)

    def _emit(self, pc, raw, decoded, regs_before, next_pc, fault=None):
        if self.tracer is None:
            return
        event = StepEvent(
            pc=pc,
            raw=raw,
            opcode=raw & 0x7f,
            mnemonic=decoded.mnemonic if decoded is not None else "???",
            regs_before=regs_before,
            regs_after=self.regs.values(),
            next_pc=next_pc,
            mem_writes=list(self.mem_writes),
            warnings=list(self._warnings),
            fault=fault,
        )
        self._notify("on_step", event)

    def step(self):
        """Fetch, decode and execute the instruction at PC.

        Raises HaltException on ECALL or at the end of the image, and
        EmuFault subclasses for decode, memory and register faults. A
        DecodeFault under the "skip" policy is reported as a warning and
        PC moves on by 4 instead.
        """
        if self.halt_reason in _FINAL_HALTS:
            raise HaltException(self.halt_reason)
        pc = self.pc
        raw = self.image.fetch(pc)
        if raw is None:
            self._halt(HALT_END_OF_STREAM)

        self.mem_writes = []
        self._warnings = []
        regs_before = self.regs.values() if self.tracer is not None else None
        decoded = None
        try:
            decoded = decode(raw, self.branch_imm)
            next_pc = self.core.execute(decoded)
        except HaltException:
            self.instr_count += 1
            self.halt_reason = HALT_ECALL
            self._emit(pc, raw, decoded, regs_before, pc)
            raise
        except EmuFault as e:
            if e.pc is None:
                e.pc = pc
            if e.raw is None:
                e.raw = raw
            e.regs = self.regs.snapshot()
            if isinstance(e, DecodeFault) and self.config.decode_fault_policy == DECODE_FAULT_SKIP:
                self.pc = (pc + 4) & 0xffffffff
                self._warn(f"Skipping unrecognized instruction: {e}")
                self._emit(pc, raw, decoded, regs_before, self.pc, fault=str(e))
                return
            self.fault = e
            self.halt_reason = HALT_FAULT
            self._emit(pc, raw, decoded, regs_before, pc, fault=str(e))
            raise

        self.instr_count += 1
        self.pc = next_pc & 0xffffffff
        self._emit(pc, raw, decoded, regs_before, self.pc)

    def run(self, max_steps=None):
        """Step until the program halts; returns the halt reason.

        ``max_steps`` overrides the configured step budget; 0 disables it.
        """
        limit = self.config.max_steps if max_steps is None else max_steps
        if self.halt_reason == HALT_STEP_LIMIT:
            self.halt_reason = None
        steps = 0
        while True:
            # An exhausted budget only counts while an instruction is still pending.
            if limit and steps >= limit and self.image.fetch(self.pc) is not None:
                self.halt_reason = HALT_STEP_LIMIT
                self._warn(f"Step limit of {limit} reached at pc=0x{self.pc:08x}")
                return self.halt_reason
            try:
                self.step()
            except HaltException as e:
                return e.reason
            except EmuFault:
                return HALT_FAULT
            steps += 1

    def snapshot(self):
        return self.regs.snapshot()

    def dump_regs(self):
        for line in format_registers(self.snapshot()):
            print(line)

    def save_registers(self, filename):
        with open(filename, "wb") as f:
            f.write(pack_registers(self.snapshot()))


def format_registers(snapshot):
    values = [value for value, _locked in snapshot]
    lines = ["Register contents in HEX:"]
    for i in range(0, NUM_REGISTERS, 4):
        lines.append(", ".join(f"x{j:02d} = {values[j]:08X}" for j in range(i, i + 4)))
    lines.append("")
    lines.append("Register contents in DEC:")
    for i in range(0, NUM_REGISTERS, 4):
        lines.append(", ".join(f"x{j:02d} = {to_s32(values[j])}" for j in range(i, i + 4)))
    return lines


def pack_registers(snapshot):
    return b"".join(_REGISTER_RECORD.pack(value & 0xffffffff, 1 if locked else 0) for value, locked in snapshot)


def unpack_registers(data):
    if len(data) != _REGISTER_RECORD.size * NUM_REGISTERS:
        raise ValueError(f"Register dump must be {_REGISTER_RECORD.size * NUM_REGISTERS} bytes, got {len(data)}")
    return [(value, bool(locked)) for value, locked in _REGISTER_RECORD.iter_unpack(data)]


def _usage():
    print("Usage: python rv32emu.py <program.bin> [OPTIONS]")
    print("Options:")
    print("  --config=FILE            Load emulator settings from a JSON file")
    print("  --max-steps=N            Stop after N instructions (0 = unlimited)")
    print("  --branch-imm=MODE        Branch immediate decoding: canonical or legacy")
    print("  --on-decode-fault=MODE   halt (default) or skip")
    print("  --memory-size=N          Data memory size in bytes")
    print("  --dump=FILE              Register dump path (default: registers.hex)")
    print("  --no-dump                Do not write a register dump")
    print("  --no-seed                Do not copy the image into data memory")
    print("  --quiet                  Only print warnings and the final report")


_VALUE_OPTIONS = {
    "--max-steps": "max_steps",
    "--branch-imm": "branch_imm",
    "--on-decode-fault": "decode_fault_policy",
    "--memory-size": "memory_size",
    "--dump": "dump_path",
}

_FLAG_OPTIONS = {
    "--no-dump": ("dump_path", ""),
    "--no-seed": ("seed_memory", False),
    "--quiet": ("trace", False),
}


def parse_args(argv):
    """Return (image_path, config), or None when help was requested."""
    overrides = {}
    config_file = None
    positional = []
    args = list(argv)
    while args:
        arg = args.pop(0)
        if arg in ("-h", "--help"):
            return None
        if arg.startswith("--config="):
            config_file = arg.split("=", 1)[1]
        elif arg in _FLAG_OPTIONS:
            key, value = _FLAG_OPTIONS[arg]
            overrides[key] = value
        elif arg.startswith("--") and "=" in arg and arg.split("=", 1)[0] in _VALUE_OPTIONS:
            name, value = arg.split("=", 1)
            overrides[_VALUE_OPTIONS[name]] = value
        elif arg.startswith("-"):
            raise ArgumentError(f"Unknown option: {arg}")
        else:
            positional.append(arg)

    if len(positional) != 1:
        raise ArgumentError("Expected exactly one program image")

    try:
        config = load_config(config_file) if config_file else EmuConfig()
        config = config.updated(**overrides)
    except OSError as e:
        raise ArgumentError(f"Could not read config '{config_file}': {e}") from e
    except ValueError as e:
        raise ArgumentError(str(e)) from e
    return positional[0], config


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    try:
        parsed = parse_args(argv)
    except ArgumentError as e:
        print(f"[ERROR] {e}")
        _usage()
        return 1
    if parsed is None:
        _usage()
        return 0
    image_path, config = parsed

    try:
        image = load_image(image_path, config.memory_size)
    except (ArgumentError, ImageTooLargeError) as e:
        print(f"[ERROR] {e}")
        return 1

    sim = RV32Emu(image, config, tracer=ConsoleTracer(verbose=config.trace))
    print(f"[SIM] Loaded {image.name}: {len(image)} bytes")
    print(f"[SIM] Branch immediate mode: {sim.branch_imm}")

    reason = sim.run()
    if reason == HALT_ECALL:
        print("[SIM] E-call instruction. The program has ended.")
    elif reason == HALT_END_OF_STREAM:
        print(f"[SIM] End of instruction stream at pc=0x{sim.pc:08x}")
    elif reason == HALT_FAULT:
        print(f"[SIM] Execution stopped: {sim.fault}")
    else:
        print(f"[SIM] Step limit of {config.max_steps} reached at pc=0x{sim.pc:08x}")
    print(f"[SIM] Executed {sim.instr_count} instructions")
    print()
    sim.dump_regs()

    if config.dump_path:
        try:
            sim.save_registers(config.dump_path)
        except OSError as e:
            print(f"Error: Could not create {config.dump_path} file: {e}")
            return 1
    print("Simulation completed.")
    return 0 if reason in (HALT_ECALL, HALT_END_OF_STREAM) else 2


if __name__ == "__main__":
    sys.exit(main())
