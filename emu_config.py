import json
from dataclasses import dataclass, fields, replace

from data_memory import DEFAULT_MEMORY_SIZE
from instr_decode import BRANCH_IMM_CANONICAL, BRANCH_IMM_MODES


DECODE_FAULT_HALT = "halt"
DECODE_FAULT_SKIP = "skip"
DECODE_FAULT_POLICIES = (DECODE_FAULT_HALT, DECODE_FAULT_SKIP)

DEFAULT_MAX_STEPS = 10_000_000
DEFAULT_DUMP_PATH = "registers.hex"


def _parse_int(value, default=0):
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, str):
        return int(value, 0)
    return int(value)


def _parse_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("1", "true", "yes", "on"):
            return True
        if text in ("0", "false", "no", "off"):
            return False
    return bool(value)


def _parse_choice(value, choices, name):
    text = str(value).strip().lower()
    if text not in choices:
        raise ValueError(f"Invalid {name}: {value!r} (expected one of {', '.join(choices)})")
    return text


@dataclass
class EmuConfig:
    memory_size: int = DEFAULT_MEMORY_SIZE
    max_steps: int = DEFAULT_MAX_STEPS
    decode_fault_policy: str = DECODE_FAULT_HALT
    branch_imm: str = BRANCH_IMM_CANONICAL
    seed_memory: bool = True
    dump_path: str = DEFAULT_DUMP_PATH
    trace: bool = True

    def __post_init__(self):
        self.memory_size = _parse_int(self.memory_size, DEFAULT_MEMORY_SIZE)
        if self.memory_size <= 0:
            raise ValueError(f"Invalid memory_size: {self.memory_size}")
        self.max_steps = _parse_int(self.max_steps, 0)
        if self.max_steps < 0:
            raise ValueError(f"Invalid max_steps: {self.max_steps}")
        self.decode_fault_policy = _parse_choice(
            self.decode_fault_policy, DECODE_FAULT_POLICIES, "decode_fault_policy"
        )
        self.branch_imm = _parse_choice(self.branch_imm, BRANCH_IMM_MODES, "branch_imm")
        self.seed_memory = _parse_bool(self.seed_memory, True)
        self.dump_path = self.dump_path or ""
        self.trace = _parse_bool(self.trace, True)

    def updated(self, **overrides):
        return replace(self, **overrides)


def config_from_dict(data, base=None):
    if not isinstance(data, dict):
        raise ValueError("Config must be a JSON object")
    known = {f.name for f in fields(EmuConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown config keys: {', '.join(unknown)}")
    base = base or EmuConfig()
    return base.updated(**data)


def load_config(filename, base=None):
    with open(filename, "r") as f:
        data = json.load(f)
    return config_from_dict(data, base)
