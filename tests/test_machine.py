"""
Machine tests.

Each group pins down one part of step(): pointer and cell wraparound, I/O,
loop jumps (including unmatched brackets), and the load/reset lifecycle.
"""
import pytest

from machine import Machine, RunState, TAPE_SIZE, check_delay


def run_to_halt(m, limit=1_000_000):
    steps = 0
    while m.step():
        steps += 1
        assert steps < limit, "program did not halt"
    return steps


class TestInitialState:
    def test_defaults(self, machine):
        assert machine.tape_size == TAPE_SIZE
        assert machine.pointer == 0
        assert machine.pc == 0
        assert machine.program_length == 0
        assert machine.output == ""
        assert machine.run_state is RunState.IDLE
        assert all(v == 0 for v in machine.tape)

    def test_step_without_program_halts(self, machine):
        assert machine.step() is False
        assert machine.run_state is RunState.IDLE

    def test_bad_tape_size(self):
        with pytest.raises(ValueError):
            Machine(tape_size=0)


class TestPointer:
    def test_move_right_wraps_to_zero(self, small_machine):
        small_machine.load(">" * 8)
        run_to_halt(small_machine)
        assert small_machine.pointer == 0

    def test_move_left_at_zero_wraps_to_last(self, small_machine):
        small_machine.load("<")
        small_machine.step()
        assert small_machine.pointer == 7

    def test_move_right_then_left(self, machine):
        machine.load(">>><")
        run_to_halt(machine)
        assert machine.pointer == 2

    def test_wrap_on_default_tape(self, machine):
        machine.load("<")
        machine.step()
        assert machine.pointer == TAPE_SIZE - 1


class TestCells:
    def test_increment_wraps(self, machine):
        machine.load("+" * 256)
        run_to_halt(machine)
        assert machine.cell(0) == 0

    def test_increment_255(self, machine):
        machine.load("+" * 255)
        run_to_halt(machine)
        assert machine.cell(0) == 255

    def test_decrement_at_zero_wraps(self, machine):
        machine.load("-")
        machine.step()
        assert machine.cell(0) == 255

    def test_cell_index_wraps(self, small_machine):
        small_machine.load("<+")
        run_to_halt(small_machine)
        assert small_machine.cell(7) == 1
        assert small_machine.cell(-1) == 1
        assert small_machine.cell(15) == 1


class TestOutput:
    @pytest.mark.parametrize("n", [1, 65, 255])
    def test_increment_n_then_write(self, machine, n):
        machine.load("+" * n + ".")
        for _ in range(n + 1):
            machine.step()
        assert machine.output == chr(n)
        assert len(machine.output) == 1

    def test_hello_world(self, machine, hello_world):
        machine.load(hello_world)
        run_to_halt(machine)
        assert machine.output == "Hello World!\n"
        assert machine.halted

    def test_output_is_appended(self, machine):
        machine.load("+.+.")
        run_to_halt(machine)
        assert machine.output == "\x01\x02"


class TestInput:
    def test_reads_input_bytes(self, machine):
        machine.load(",>,", "AB")
        run_to_halt(machine)
        assert machine.cell(0) == ord("A")
        assert machine.cell(1) == ord("B")
        assert machine.input_remaining == 0

    def test_empty_input_reads_zero(self, machine):
        machine.load("+++,>+++,,", "")
        run_to_halt(machine)
        assert machine.cell(0) == 0
        assert machine.cell(1) == 0

    def test_exhausted_input_stays_zero(self, machine):
        machine.load(",>,>,", "x")
        run_to_halt(machine)
        assert machine.cell(0) == ord("x")
        assert machine.cell(1) == 0
        assert machine.cell(2) == 0

    def test_wide_characters_keep_low_byte(self, machine):
        machine.load(",", "Ł")  # 0x141
        machine.step()
        assert machine.cell(0) == 0x41

    def test_cat(self, machine):
        machine.load(",[.,]", "echo")
        run_to_halt(machine)
        assert machine.output == "echo"


class TestLoops:
    def test_cell_copy_loop(self, machine):
        machine.load("+++[>+<-]")
        run_to_halt(machine)
        assert machine.cell(0) == 0
        assert machine.cell(1) == 3
        assert machine.pointer == 0

    def test_skip_loop_when_zero(self, machine):
        machine.load("[+++]+")
        assert machine.step() is True
        # jumped onto ']' and advanced past it
        assert machine.pc == 5
        run_to_halt(machine)
        assert machine.cell(0) == 1

    def test_nested_loops(self, machine):
        # 2 * 3 = 6, accumulated in cell 2
        machine.load("++[>+++[>+<-]<-]>>")
        run_to_halt(machine)
        assert machine.cell(2) == 6

    def test_backward_jump_lands_after_open_bracket(self, machine):
        machine.load("++[-]")
        for _ in range(4):
            machine.step()
        # '+', '+', '[', '-', now at ']'
        assert machine.pc == 4
        machine.step()
        assert machine.pc == 3

    def test_unterminated_loop_halts_without_error(self, machine):
        machine.load("[+")
        assert machine.step() is False
        assert machine.pc > machine.program_length
        assert machine.halted
        assert machine.step() is False

    def test_unterminated_inner_loop(self, machine):
        machine.load("+[[-]")
        run_to_halt(machine)
        assert machine.halted

    def test_unmatched_close_with_nonzero_cell_halts(self, machine):
        machine.load("+]+++")
        assert machine.step() is True
        assert machine.step() is False
        assert machine.halted
        assert machine.cell(0) == 1
        assert machine.run_state is RunState.IDLE

    def test_unmatched_close_with_zero_cell_is_no_op(self, machine):
        machine.load("]+")
        run_to_halt(machine)
        assert machine.cell(0) == 1


class TestStepping:
    def test_step_returns_false_after_last_instruction(self, machine):
        machine.load("++")
        assert machine.step() is True
        assert machine.step() is False
        assert machine.pc == 2

    def test_step_count(self, machine):
        machine.load("+++[>+<-]")
        run_to_halt(machine)
        assert machine.step_count == 3 + 1 + 3 * 5

    def test_run_batch(self, machine):
        machine.load("+" * 10)
        assert machine.run_batch(4) is True
        assert machine.cell(0) == 4
        assert machine.run_batch(100) is False
        assert machine.cell(0) == 10

    def test_run_batch_uses_steps_per_tick(self, machine):
        machine.load("+" * 10)
        machine.steps_per_tick = 3
        machine.run_batch()
        assert machine.step_count == 3

    def test_run_batch_on_halted_machine(self, machine):
        machine.load("+")
        machine.run()
        assert machine.run_batch(5) is False
        assert machine.step_count == 1

    def test_run_with_limit(self, machine):
        machine.load("+[]")
        assert machine.run(max_steps=50) == 50
        assert not machine.halted

    def test_run_to_completion(self, machine, hello_world):
        machine.load(hello_world)
        steps = machine.run()
        assert steps == machine.step_count
        assert machine.output == "Hello World!\n"


class TestAccessors:
    def test_source_offset_follows_pc(self, machine):
        machine.load("a+ b- c")
        assert machine.source_offset == 1
        assert machine.current_instruction == "+"
        machine.step()
        assert machine.source_offset == 4
        assert machine.current_instruction == "-"
        machine.step()
        assert machine.source_offset is None
        assert machine.current_instruction is None

    def test_tape_window_clamped_at_start(self, machine):
        machine.load("+>++")
        machine.run()
        start, data = machine.tape_window(3)
        assert start == 0
        assert data == [1, 2, 0, 0, 0]

    def test_tape_window_clamped_at_end(self, small_machine):
        small_machine.load("<+")
        small_machine.run()
        start, data = small_machine.tape_window(2)
        assert start == 5
        assert data == [0, 0, 1]


class TestSettings:
    def test_delay_validation(self, machine):
        machine.delay = 0
        with pytest.raises(ValueError):
            machine.delay = -1

    def test_delay_must_be_finite(self, machine):
        with pytest.raises(ValueError):
            machine.delay = float('inf')
        with pytest.raises(ValueError):
            check_delay(float('nan'))

    def test_steps_per_tick_validation(self, machine):
        machine.steps_per_tick = 1000
        assert machine.steps_per_tick == 1000
        with pytest.raises(ValueError):
            machine.steps_per_tick = 0


class FakeHandle:
    def __init__(self):
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class TestLifecycle:
    def test_reset_clears_state(self, machine):
        machine.load("+++>++.")
        machine.run()
        machine.reset()
        assert machine.pc == 0
        assert machine.pointer == 0
        assert machine.output == ""
        assert machine.step_count == 0
        assert machine.cell(0) == 0 and machine.cell(1) == 0
        assert machine.program_length == 7

    def test_reset_reproduces_output(self, machine, hello_world):
        machine.load(hello_world)
        machine.run()
        first = machine.output
        machine.reset()
        machine.run()
        assert machine.output == first == "Hello World!\n"

    def test_reset_keeps_input_consumed_by_default(self, machine):
        machine.load(",.", "A")
        machine.run()
        machine.reset()
        machine.run()
        assert machine.output == "\x00"

    def test_reset_can_rewind_input(self, machine):
        machine.load(",[.,]", "abc")
        machine.run()
        machine.reset(rewind_input=True)
        machine.run()
        assert machine.output == "abc"

    def test_load_after_reset_refills_input(self, machine):
        machine.load(",.", "A")
        machine.run()
        machine.reset()
        machine.load(",.", "A")
        machine.run()
        assert machine.output == "A"

    def test_load_replaces_program(self, machine):
        machine.load("+++")
        machine.run()
        machine.load("--")
        assert machine.program_length == 2
        assert machine.cell(0) == 0
        machine.run()
        assert machine.cell(0) == 254

    def test_reset_cancels_pending(self, machine):
        handle = FakeHandle()
        machine.pending = handle
        machine.start()
        machine.reset()
        assert handle.cancelled
        assert machine.pending is None
        assert machine.run_state is RunState.IDLE

    def test_pause_mid_program(self, machine):
        machine.load("+++")
        machine.start()
        machine.step()
        handle = FakeHandle()
        machine.pending = handle
        machine.pause()
        assert machine.run_state is RunState.PAUSED
        assert handle.cancelled

    def test_pause_when_halted_is_idle(self, machine):
        machine.load("+")
        machine.run()
        machine.start()
        machine.pause()
        assert machine.run_state is RunState.IDLE

    def test_halting_sets_idle(self, machine):
        machine.load("+")
        machine.start()
        assert machine.run_state is RunState.RUNNING
        machine.step()
        assert machine.run_state is RunState.IDLE

    def test_independent_machines(self):
        a, b = Machine(tape_size=16), Machine(tape_size=16)
        a.load("+++")
        b.load("-")
        a.run()
        b.run()
        assert a.cell(0) == 3
        assert b.cell(0) == 255
