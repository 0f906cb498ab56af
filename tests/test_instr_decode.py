import pytest

from emu_faults import DecodeFault
from instr_decode import (
    BType,
    IType,
    JalrType,
    JType,
    LType,
    RType,
    SType,
    SysType,
    UType,
    b_imm,
    decode,
    sign_extend,
    to_s32,
)


def encode_b_type(imm, rs2, rs1, funct3, opcode=0x63):
    imm &= 0x1fff
    return (
        ((imm >> 12) & 0x1) << 31
        | ((imm >> 5) & 0x3f) << 25
        | ((rs2 & 0x1f) << 20)
        | ((rs1 & 0x1f) << 15)
        | ((funct3 & 0x7) << 12)
        | ((imm >> 1) & 0xf) << 8
        | ((imm >> 11) & 0x1) << 7
        | (opcode & 0x7f)
    )


def encode_j_type(imm, rd, opcode=0x6f):
    imm &= 0x1fffff
    return (
        ((imm >> 20) & 0x1) << 31
        | ((imm >> 12) & 0xff) << 12
        | ((imm >> 11) & 0x1) << 20
        | ((imm >> 1) & 0x3ff) << 21
        | ((rd & 0x1f) << 7)
        | (opcode & 0x7f)
    )


def test_sign_helpers():
    assert sign_extend(0xfff, 12) == -1
    assert sign_extend(0x7ff, 12) == 0x7ff
    assert sign_extend(0x1800, 12) == -0x800
    assert to_s32(0xffffffff) == -1
    assert to_s32(0x7fffffff) == 0x7fffffff


def test_r_type_fields():
    d = decode(0x40208033)  # sub x0, x1, x2
    assert isinstance(d, RType)
    assert d.mnemonic == "SUB"
    assert (d.rd, d.rs1, d.rs2, d.funct3, d.funct7) == (0, 1, 2, 0x0, 0x20)

    d = decode(0x003100b3)  # add x1, x2, x3
    assert d.mnemonic == "ADD"
    assert (d.rd, d.rs1, d.rs2) == (1, 2, 3)


def test_r_type_requires_known_funct7():
    assert decode(0x0020a1b3).mnemonic == "SLT"
    assert decode(0x4020d1b3).mnemonic == "SRA"
    with pytest.raises(DecodeFault):
        decode(0x0220a1b3)  # funct3=2, funct7=0x01 (MULHSU)
    with pytest.raises(DecodeFault):
        decode(0x40209133)  # funct3=1, funct7=0x20
    with pytest.raises(DecodeFault) as excinfo:
        decode(0x022081b3)  # funct3=0, funct7=0x01
    assert excinfo.value.raw == 0x022081b3


def test_i_type_immediate_sign_extension():
    d = decode(0xfff00093)  # addi x1, x0, -1
    assert isinstance(d, IType)
    assert d.mnemonic == "ADDI"
    assert d.imm == -1

    d = decode(0x7ff00093)  # addi x1, x0, 2047
    assert d.imm == 2047

    d = decode(0x80000093)  # addi x1, x0, -2048
    assert d.imm == -2048


def test_i_type_shift_selection_by_bit30():
    assert decode(0x0010d093).mnemonic == "SRLI"
    assert decode(0x4010d093).mnemonic == "SRAI"
    assert decode(0x00409093).mnemonic == "SLLI"


def test_store_immediate_is_zero_extended():
    d = decode(0xfe112e23)  # sw x1, -4(x2) in canonical encoding
    assert isinstance(d, SType)
    assert d.mnemonic == "SW"
    assert (d.rs1, d.rs2) == (2, 1)
    assert d.imm == 0xffc


def test_load_fields():
    d = decode(0xffc12083)  # lw x1, -4(x2)
    assert isinstance(d, LType)
    assert d.mnemonic == "LW"
    assert (d.rd, d.rs1, d.imm) == (1, 2, -4)
    assert decode(0x00014083).mnemonic == "LBU"


@pytest.mark.parametrize("word", [0x00003083, 0x00006083, 0x00007083, 0x00003023, 0x00002063])
def test_unknown_funct3_within_known_opcode(word):
    with pytest.raises(DecodeFault):
        decode(word)


def test_upper_immediates():
    d = decode(0x123450b7)  # lui x1, 0x12345
    assert isinstance(d, UType)
    assert d.mnemonic == "LUI"
    assert d.imm & 0xffffffff == 0x12345000

    d = decode(0x00001097)  # auipc x1, 0x1
    assert d.mnemonic == "AUIPC"
    assert d.imm == 0x1000

    assert decode(0xfffff0b7).imm == -0x1000


@pytest.mark.parametrize("offset", [8, -8, 2048, -2048, 4094, -4096, -128])
def test_canonical_branch_immediate(offset):
    d = decode(encode_b_type(offset, 2, 1, 0x0))
    assert isinstance(d, BType)
    assert d.imm == offset
    assert d.imm & 1 == 0


def test_legacy_branch_immediate():
    # Small displacements agree between the two layouts.
    for offset in (8, 16, -8, -4):
        assert b_imm(encode_b_type(offset, 0, 0, 0), "legacy") == offset
    # Bit 11 of the canonical layout lands in bit 0 of the flat field.
    assert b_imm(encode_b_type(2048, 0, 0, 0), "legacy") == 1
    assert b_imm(encode_b_type(-128, 0, 0, 0), "legacy") == -64
    assert decode(encode_b_type(-128, 0, 0, 0), branch_imm="legacy").imm == -64

    with pytest.raises(ValueError):
        b_imm(0x63, "bogus")


@pytest.mark.parametrize("offset", [12, -16, 0x7fffe, -0x100000, 2048])
def test_jal_immediate(offset):
    d = decode(encode_j_type(offset, 1))
    assert isinstance(d, JType)
    assert d.rd == 1
    assert d.imm == offset


def test_jalr_and_system():
    d = decode(0xffc080e7)  # jalr x1, -4(x1)
    assert isinstance(d, JalrType)
    assert (d.rd, d.rs1, d.imm) == (1, 1, -4)

    d = decode(0x00000073)
    assert isinstance(d, SysType)
    assert d.mnemonic == "ECALL"
    assert isinstance(decode(0xffffffff & ~0x0c), SysType)


@pytest.mark.parametrize("word", [0x00000000, 0xffffffff, 0x0000000f, 0x0000007b])
def test_unknown_opcode(word):
    with pytest.raises(DecodeFault) as excinfo:
        decode(word)
    assert excinfo.value.raw == word
