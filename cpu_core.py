from emu_faults import DecodeFault, HaltException
from instr_decode import (
    BType,
    IType,
    JalrType,
    JType,
    LType,
    OP_AUIPC,
    OP_LUI,
    RType,
    SType,
    SysType,
    UType,
    sign_extend,
    to_s32,
)


class CPUCore:
    """Executes decoded instructions against the owning emulator's state.

    Attribute reads and writes that are not the core's own fall through to
    the emulator, so handlers can use ``self.regs``, ``self.memory`` and
    ``self.pc`` directly.
    """

    _FORMAT_HANDLERS = {
        RType: "_exec_r_type",
        IType: "_exec_i_type",
        LType: "_exec_load",
        SType: "_exec_store",
        UType: "_exec_upper",
        BType: "_exec_branch",
        JType: "_exec_jal",
        JalrType: "_exec_jalr",
        SysType: "_exec_system",
    }

    def __init__(self, sim):
        object.__setattr__(self, "sim", sim)

    def __getattr__(self, name):
        return getattr(self.sim, name)

    def __setattr__(self, name, value):
        if name == "sim":
            object.__setattr__(self, name, value)
        else:
            setattr(self.sim, name, value)

    def execute(self, decoded):
        """Run one decoded instruction and return the next PC."""
        handler_name = self._FORMAT_HANDLERS.get(type(decoded))
        if handler_name is None:
            self._illegal_instruction(decoded)
        handler = getattr(self, handler_name)
        return handler(decoded, (self.pc + 4) & 0xffffffff)

    def _illegal_instruction(self, decoded):
        raise DecodeFault(
            f"Unrecognized {type(decoded).__name__} instruction {decoded.mnemonic}",
            pc=self.pc,
            raw=decoded.raw,
        )

    def _record_store(self, addr, size, value):
        self.mem_writes.append((addr, size, value & ((1 << (size * 8)) - 1)))

    def _exec_r_type(self, d, next_pc):
        rs1_u = self.regs.read(d.rs1)
        rs2_u = self.regs.read(d.rs2)
        rs1_s = to_s32(rs1_u)
        rs2_s = to_s32(rs2_u)
        shamt = rs2_u & 0x1f
        funct3, funct7 = d.funct3, d.funct7
        if funct3 == 0x0:
            if funct7 == 0x00:  # ADD
                self.regs.write(d.rd, rs1_u + rs2_u)
            elif funct7 == 0x20:  # SUB
                self.regs.write(d.rd, rs1_u - rs2_u)
            else:
                self._illegal_instruction(d)
        elif funct7 != 0x00 and funct3 != 0x5:
            self._illegal_instruction(d)
        elif funct3 == 0x1:  # SLL
            self.regs.write(d.rd, rs1_u << shamt)
        elif funct3 == 0x2:  # SLT
            self.regs.write(d.rd, 1 if rs1_s < rs2_s else 0)
        elif funct3 == 0x3:  # SLTU
            self.regs.write(d.rd, 1 if rs1_u < rs2_u else 0)
        elif funct3 == 0x4:  # XOR
            self.regs.write(d.rd, rs1_u ^ rs2_u)
        elif funct3 == 0x5:
            if funct7 == 0x00:  # SRL
                self.regs.write(d.rd, rs1_u >> shamt)
            elif funct7 == 0x20:  # SRA
                self.regs.write(d.rd, rs1_s >> shamt)
            else:
                self._illegal_instruction(d)
        elif funct3 == 0x6:  # OR
            self.regs.write(d.rd, rs1_u | rs2_u)
        elif funct3 == 0x7:  # AND
            self.regs.write(d.rd, rs1_u & rs2_u)
        else:
            self._illegal_instruction(d)
        return next_pc

    def _exec_i_type(self, d, next_pc):
        rs1_u = self.regs.read(d.rs1)
        rs1_s = to_s32(rs1_u)
        imm = d.imm
        shamt = imm & 0x1f
        funct3 = d.funct3
        if funct3 == 0x0:  # ADDI
            self.regs.write(d.rd, rs1_u + imm)
        elif funct3 == 0x1:  # SLLI
            self.regs.write(d.rd, rs1_u << shamt)
        elif funct3 == 0x2:  # SLTI
            self.regs.write(d.rd, 1 if rs1_s < imm else 0)
        elif funct3 == 0x3:  # SLTIU
            self.regs.write(d.rd, 1 if rs1_u < (imm & 0xffffffff) else 0)
        elif funct3 == 0x4:  # XORI
            self.regs.write(d.rd, rs1_u ^ imm)
        elif funct3 == 0x5:
            if d.raw & 0x40000000:  # SRAI
                self.regs.write(d.rd, rs1_s >> shamt)
            else:  # SRLI
                self.regs.write(d.rd, rs1_u >> shamt)
        elif funct3 == 0x6:  # ORI
            self.regs.write(d.rd, rs1_u | imm)
        elif funct3 == 0x7:  # ANDI
            self.regs.write(d.rd, rs1_u & imm)
        else:
            self._illegal_instruction(d)
        return next_pc

    def _exec_load(self, d, next_pc):
        addr = (self.regs.read(d.rs1) + d.imm) & 0xffffffff
        funct3 = d.funct3
        if funct3 == 0x0:  # LB
            self.regs.write(d.rd, sign_extend(self.memory.load_byte(addr), 8))
        elif funct3 == 0x1:  # LH
            self.regs.write(d.rd, sign_extend(self.memory.load_half(addr), 16))
        elif funct3 == 0x2:  # LW
            self.regs.write(d.rd, self.memory.load_word(addr))
        elif funct3 == 0x4:  # LBU
            self.regs.write(d.rd, self.memory.load_byte(addr))
        elif funct3 == 0x5:  # LHU
            self.regs.write(d.rd, self.memory.load_half(addr))
        else:
            self._illegal_instruction(d)
        return next_pc

    def _exec_store(self, d, next_pc):
        addr = (self.regs.read(d.rs1) + d.imm) & 0xffffffff
        value = self.regs.read(d.rs2)
        funct3 = d.funct3
        if funct3 == 0x0:  # SB
            self.memory.store_byte(addr, value)
            self._record_store(addr, 1, value)
        elif funct3 == 0x1:  # SH
            self.memory.store_half(addr, value)
            self._record_store(addr, 2, value)
        elif funct3 == 0x2:  # SW
            self.memory.store_word(addr, value)
            self._record_store(addr, 4, value)
        else:
            self._illegal_instruction(d)
        return next_pc

    def _exec_upper(self, d, next_pc):
        if d.opcode == OP_LUI:
            self.regs.write(d.rd, d.imm)
        elif d.opcode == OP_AUIPC:
            self.regs.write(d.rd, self.pc + d.imm)
        else:
            self._illegal_instruction(d)
        return next_pc

    def _exec_branch(self, d, next_pc):
        rs1_u = self.regs.read(d.rs1)
        rs2_u = self.regs.read(d.rs2)
        rs1_s = to_s32(rs1_u)
        rs2_s = to_s32(rs2_u)
        funct3 = d.funct3
        if funct3 == 0x0:  # BEQ
            taken = rs1_u == rs2_u
        elif funct3 == 0x1:  # BNE
            taken = rs1_u != rs2_u
        elif funct3 == 0x4:  # BLT
            taken = rs1_s < rs2_s
        elif funct3 == 0x5:  # BGE
            taken = rs1_s >= rs2_s
        elif funct3 == 0x6:  # BLTU
            taken = rs1_u < rs2_u
        elif funct3 == 0x7:  # BGEU
            taken = rs1_u >= rs2_u
        else:
            self._illegal_instruction(d)
        if taken:
            return (self.pc + d.imm) & 0xffffffff
        return next_pc

    def _exec_jal(self, d, next_pc):
        target = (self.pc + d.imm) & 0xffffffff
        self.regs.write(d.rd, next_pc)
        return target

    def _exec_jalr(self, d, next_pc):
        # Target is computed before rd is written, in case rd == rs1.
        target = (self.regs.read(d.rs1) + d.imm) & 0xfffffffe
        self.regs.write(d.rd, next_pc)
        return target

    def _exec_system(self, d, next_pc):
        raise HaltException("ecall")
