from dataclasses import dataclass

from emu_faults import DecodeFault


BRANCH_IMM_CANONICAL = "canonical"
BRANCH_IMM_LEGACY = "legacy"
BRANCH_IMM_MODES = (BRANCH_IMM_CANONICAL, BRANCH_IMM_LEGACY)

OP_R = 0x33
OP_I = 0x13
OP_STORE = 0x23
OP_LOAD = 0x03
OP_LUI = 0x37
OP_AUIPC = 0x17
OP_BRANCH = 0x63
OP_JAL = 0x6F
OP_JALR = 0x67
OP_SYSTEM = 0x73

# (funct3, funct7) -> mnemonic
_R_MNEMONICS = {
    (0x0, 0x00): "ADD",
    (0x0, 0x20): "SUB",
    (0x1, 0x00): "SLL",
    (0x2, 0x00): "SLT",
    (0x3, 0x00): "SLTU",
    (0x4, 0x00): "XOR",
    (0x5, 0x00): "SRL",
    (0x5, 0x20): "SRA",
    (0x6, 0x00): "OR",
    (0x7, 0x00): "AND",
}
_I_MNEMONICS = {
    0x0: "ADDI",
    0x1: "SLLI",
    0x2: "SLTI",
    0x3: "SLTIU",
    0x4: "XORI",
    0x6: "ORI",
    0x7: "ANDI",
}
_STORE_MNEMONICS = {0x0: "SB", 0x1: "SH", 0x2: "SW"}
_LOAD_MNEMONICS = {0x0: "LB", 0x1: "LH", 0x2: "LW", 0x4: "LBU", 0x5: "LHU"}
_BRANCH_MNEMONICS = {
    0x0: "BEQ",
    0x1: "BNE",
    0x4: "BLT",
    0x5: "BGE",
    0x6: "BLTU",
    0x7: "BGEU",
}


def sign_extend(val, bits):
    return (val & ((1 << bits) - 1)) - (1 << bits) if (val & (1 << (bits - 1))) else val & ((1 << bits) - 1)


def to_s32(val):
    val &= 0xffffffff
    return val - 0x100000000 if val & 0x80000000 else val


@dataclass(frozen=True)
class Instruction:
    raw: int
    opcode: int
    mnemonic: str


@dataclass(frozen=True)
class RType(Instruction):
    rd: int
    funct3: int
    rs1: int
    rs2: int
    funct7: int


@dataclass(frozen=True)
class IType(Instruction):
    rd: int
    funct3: int
    rs1: int
    imm: int


@dataclass(frozen=True)
class SType(Instruction):
    funct3: int
    rs1: int
    rs2: int
    imm: int


@dataclass(frozen=True)
class LType(Instruction):
    rd: int
    funct3: int
    rs1: int
    imm: int


@dataclass(frozen=True)
class UType(Instruction):
    rd: int
    imm: int


@dataclass(frozen=True)
class BType(Instruction):
    funct3: int
    rs1: int
    rs2: int
    imm: int


@dataclass(frozen=True)
class JType(Instruction):
    rd: int
    imm: int


@dataclass(frozen=True)
class JalrType(Instruction):
    rd: int
    funct3: int
    rs1: int
    imm: int


@dataclass(frozen=True)
class SysType(Instruction):
    pass


def i_imm(word):
    return sign_extend(word >> 20, 12)


def s_imm(word):
    # Store offsets are zero-extended, unlike the canonical ISA.
    return (((word >> 25) & 0x7f) << 5) | ((word >> 7) & 0x1f)


def b_imm(word, mode=BRANCH_IMM_CANONICAL):
    if mode == BRANCH_IMM_LEGACY:
        imm2 = (word >> 25) & 0x7f
        imm = (imm2 << 5) | ((word >> 7) & 0x1f)
        if imm2 & 0x40:
            imm = to_s32((imm | 0xffffffc0) - 1)
        return imm
    if mode != BRANCH_IMM_CANONICAL:
        raise ValueError(f"Unknown branch immediate mode: {mode!r}")
    imm = (
        (((word >> 31) & 0x1) << 12)
        | (((word >> 7) & 0x1) << 11)
        | (((word >> 25) & 0x3f) << 5)
        | (((word >> 8) & 0xf) << 1)
    )
    return sign_extend(imm, 13)


def u_imm(word):
    return to_s32(word & 0xfffff000)


def j_imm(word):
    imm = (
        (((word >> 31) & 0x1) << 20)
        | (((word >> 12) & 0xff) << 12)
        | (((word >> 20) & 0x1) << 11)
        | (((word >> 21) & 0x3ff) << 1)
    )
    return sign_extend(imm, 21)


def _unrecognized(kind, word, **fields):
    detail = ", ".join(f"{name}=0x{value:x}" for name, value in fields.items())
    return DecodeFault(f"Unrecognized {kind} instruction ({detail})", raw=word)


def decode(word, branch_imm=BRANCH_IMM_CANONICAL):
    """Split a raw 32-bit word into one of the instruction records above.

    Raises DecodeFault for an unknown opcode, or for a funct3/funct7
    combination that the opcode does not define.
    """
    word &= 0xffffffff
    opcode = word & 0x7f
    rd = (word >> 7) & 0x1f
    funct3 = (word >> 12) & 0x7
    rs1 = (word >> 15) & 0x1f
    rs2 = (word >> 20) & 0x1f
    funct7 = word >> 25

    if opcode == OP_R:
        mnemonic = _R_MNEMONICS.get((funct3, funct7))
        if mnemonic is None:
            raise _unrecognized("R-type", word, funct3=funct3, funct7=funct7)
        return RType(word, opcode, mnemonic, rd, funct3, rs1, rs2, funct7)
    if opcode == OP_I:
        if funct3 == 0x5:
            mnemonic = "SRAI" if word & 0x40000000 else "SRLI"
        else:
            mnemonic = _I_MNEMONICS[funct3]
        return IType(word, opcode, mnemonic, rd, funct3, rs1, i_imm(word))
    if opcode == OP_STORE:
        mnemonic = _STORE_MNEMONICS.get(funct3)
        if mnemonic is None:
            raise _unrecognized("S-type", word, funct3=funct3)
        return SType(word, opcode, mnemonic, funct3, rs1, rs2, s_imm(word))
    if opcode == OP_LOAD:
        mnemonic = _LOAD_MNEMONICS.get(funct3)
        if mnemonic is None:
            raise _unrecognized("L-type", word, funct3=funct3)
        return LType(word, opcode, mnemonic, rd, funct3, rs1, i_imm(word))
    if opcode == OP_LUI:
        return UType(word, opcode, "LUI", rd, u_imm(word))
    if opcode == OP_AUIPC:
        return UType(word, opcode, "AUIPC", rd, u_imm(word))
    if opcode == OP_BRANCH:
        mnemonic = _BRANCH_MNEMONICS.get(funct3)
        if mnemonic is None:
            raise _unrecognized("B-type", word, funct3=funct3)
        return BType(word, opcode, mnemonic, funct3, rs1, rs2, b_imm(word, branch_imm))
    if opcode == OP_JAL:
        return JType(word, opcode, "JAL", rd, j_imm(word))
    if opcode == OP_JALR:
        return JalrType(word, opcode, "JALR", rd, funct3, rs1, i_imm(word))
    if opcode == OP_SYSTEM:
        return SysType(word, opcode, "ECALL")
    raise DecodeFault(f"Unrecognized opcode 0x{opcode:02x}", raw=word)
