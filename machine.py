"""
The tape machine.

One Machine owns the tape, pointer, program counter, loaded program, input
cursor and output. It only ever moves forward through step(); everything else
(run loops, timers, rendering) is done by the hosts on top of it.
"""
import enum
import math
import logging

from bf_parser import parse_program

logger = logging.getLogger(__name__)

TAPE_SIZE = 30000
DEFAULT_DELAY = 50  # ms between ticks


def check_delay(value):
    if not math.isfinite(value) or value < 0:
        raise ValueError(f"delay must be a finite number >= 0, got {value}")
    return value


def check_steps_per_tick(value):
    steps = int(value)
    if steps < 1:
        raise ValueError(f"steps_per_tick must be >= 1, got {value}")
    return steps


class RunState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


class Machine:
    def __init__(self, tape_size=TAPE_SIZE, delay=DEFAULT_DELAY, steps_per_tick=1):
        if tape_size < 1:
            raise ValueError(f"tape_size must be positive, got {tape_size}")
        self.tape = bytearray(tape_size)
        self.ptr = 0
        self.pc = 0
        self.program = parse_program("")
        self.input_data = b""
        self.input_pos = 0
        self.output_chars = []
        self.step_count = 0
        self.run_state = RunState.IDLE
        self.pending = None

        self.delay = delay
        self.steps_per_tick = steps_per_tick

    # --- host settings ---

    @property
    def delay(self):
        return self._delay

    @delay.setter
    def delay(self, value):
        self._delay = check_delay(value)

    @property
    def steps_per_tick(self):
        return self._steps_per_tick

    @steps_per_tick.setter
    def steps_per_tick(self, value):
        self._steps_per_tick = check_steps_per_tick(value)

    # --- lifecycle ---

    def load(self, source, input_text=""):
        self.program = parse_program(source)
        # Characters above 255 keep their low byte.
        self.input_data = bytes(ord(c) & 0xFF for c in input_text)
        self.input_pos = 0
        logger.debug("Loaded %d ops, %d input bytes", len(self.program), len(self.input_data))
        self.reset()

    def reset(self, rewind_input=False):
        """
        Put the loaded program back at its start.

        The input cursor is left where it is unless rewind_input is set; a
        host that wants a fresh run with the same input calls load() again.
        """
        self.cancel_pending()
        self.tape[:] = bytes(len(self.tape))
        self.ptr = 0
        self.pc = 0
        self.output_chars = []
        self.step_count = 0
        self.run_state = RunState.IDLE
        if rewind_input:
            self.input_pos = 0
        logger.debug("Reset (rewind_input=%s)", rewind_input)

    def cancel_pending(self):
        if self.pending is not None:
            self.pending.cancel()
            self.pending = None

    def start(self):
        self.run_state = RunState.RUNNING

    def pause(self):
        self.cancel_pending()
        self.run_state = RunState.IDLE if self.halted else RunState.PAUSED

    # --- execution ---

    def step(self):
        ops = self.program.instructions
        if self.pc >= len(ops):
            self._halt()
            return False

        c = ops[self.pc]
        self.step_count += 1

        if c == '>':
            self.ptr = (self.ptr + 1) % len(self.tape)
        elif c == '<':
            self.ptr = (self.ptr - 1) % len(self.tape)
        elif c == '+':
            self.tape[self.ptr] = (self.tape[self.ptr] + 1) % 256
        elif c == '-':
            self.tape[self.ptr] = (self.tape[self.ptr] - 1) % 256
        elif c == '.':
            self.output_chars.append(chr(self.tape[self.ptr]))
        elif c == ',':
            if self.input_pos < len(self.input_data):
                self.tape[self.ptr] = self.input_data[self.input_pos]
                self.input_pos += 1
            else:
                self.tape[self.ptr] = 0  # EOF
        elif c == '[':
            if self.tape[self.ptr] == 0:
                # lands on the matching ']', or on len(ops) if there is none
                self.pc = self.program.jumps[self.pc]
        elif c == ']':
            if self.tape[self.ptr] != 0:
                target = self.program.jumps[self.pc]
                if target < 0:
                    # unmatched: the scan ran off the start
                    self.pc = len(ops)
                    self._halt()
                    return False
                self.pc = target

        self.pc += 1
        if self.pc < len(ops):
            return True
        self._halt()
        return False

    def _halt(self):
        if self.run_state is not RunState.IDLE:
            logger.debug("Halted after %d steps at pc=%d", self.step_count, self.pc)
        self.run_state = RunState.IDLE

    def run_batch(self, count=None):
        """Step up to count times (steps_per_tick by default); False once halted."""
        if count is None:
            count = self.steps_per_tick
        if self.halted:
            self._halt()
            return False
        for _ in range(count):
            if not self.step():
                return False
        return True

    def run(self, max_steps=None):
        """Step until halted or max_steps is used up. Returns steps executed."""
        start = self.step_count
        while max_steps is None or self.step_count - start < max_steps:
            if not self.step():
                break
        return self.step_count - start

    # --- read-only state ---

    @property
    def pointer(self):
        return self.ptr

    @property
    def tape_size(self):
        return len(self.tape)

    def cell(self, index):
        return self.tape[index % len(self.tape)]

    @property
    def program_length(self):
        return len(self.program)

    @property
    def halted(self):
        return self.pc >= len(self.program)

    @property
    def output(self):
        return "".join(self.output_chars)

    @property
    def input_remaining(self):
        return len(self.input_data) - self.input_pos

    @property
    def current_instruction(self):
        if self.halted:
            return None
        return self.program.instructions[self.pc]

    @property
    def source_offset(self):
        """Offset in the source text of the next instruction, None when halted."""
        if self.halted:
            return None
        return self.program.source_map[self.pc]

    def tape_window(self, radius):
        start = max(0, self.ptr - radius)
        end = min(len(self.tape), self.ptr + radius + 1)
        return start, list(self.tape[start:end])
