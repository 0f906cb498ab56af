import io

from step_trace import ConsoleTracer, StepEvent


def _event(**kwargs):
    fields = dict(
        pc=0x10,
        raw=0x00500093,
        opcode=0x13,
        mnemonic="ADDI",
        regs_before=[0] * 32,
        regs_after=[0, 5] + [0] * 30,
        next_pc=0x14,
    )
    fields.update(kwargs)
    return StepEvent(**fields)


def test_changed_registers():
    assert _event().changed_registers() == [(1, 0, 5)]


def test_console_tracer_output():
    stream = io.StringIO()
    tracer = ConsoleTracer(stream=stream)
    tracer.on_step(_event(mem_writes=[(0x100, 2, 0xbeef)]))
    tracer.on_step(_event(mnemonic="JAL", next_pc=0x40, regs_after=[0] * 32))
    tracer.on_warning("something odd")
    out = stream.getvalue()
    assert "[TRACE] pc=0x00000010 instr=0x00500093 op=0x13 ADDI" in out
    assert "x1: 0x00000000 -> 0x00000005" in out
    assert "mem[0x00000100] <- 0xbeef (2 bytes)" in out
    assert "jump -> 0x00000040" in out
    assert "[WARN] something odd" in out
    assert tracer.steps == 2


def test_quiet_tracer_only_prints_warnings(capsys):
    tracer = ConsoleTracer(verbose=False)
    tracer.on_step(_event())
    tracer.on_step(_event(fault="bad", mnemonic="???"))
    tracer.on_warning("x0 write")
    out = capsys.readouterr().out
    assert "[TRACE]" not in out
    assert out.strip() == "[WARN] x0 write"
    assert tracer.steps == 2
