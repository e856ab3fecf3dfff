#!/usr/bin/env python3
import sys
import logging
import argparse

from machine import Machine, TAPE_SIZE

logger = logging.getLogger(__name__)


class Colors:
    BLUE = '\033[94m'
    GREEN = '\033[92m'
    WARNING = '\033[93m'
    ENDC = '\033[0m'
    BOLD = '\033[1m'
    REVERSE = '\033[7m'


HELP = ("Commands: (s)tep [n], (c)ontinue, (b)reak <pc>, (m)em [addr] [count], "
        "(o)utput, (r)eset, (q)uit, enter to repeat last")


class Debugger:
    def __init__(self, code, input_text="", tape_size=TAPE_SIZE):
        self.code_str = code
        self.input_text = input_text
        self.machine = Machine(tape_size=tape_size)
        self.machine.load(code, input_text)
        self.breakpoints = set()
        self.last_cmd = 's'

    def print_state(self, window=8, context_window=2):
        m = self.machine
        print(f"\n{Colors.BOLD}--- Step {m.step_count} ---{Colors.ENDC}")
        print(f"PC: {m.pc} / {m.program_length}")
        print(f"Ptr: {m.ptr}")

        # tape window around ptr
        start, values = m.tape_window(window)
        tape_str = ""
        for i, v in enumerate(values, start):
            val = f"{v:03}"
            if i == m.ptr:
                tape_str += f"{Colors.REVERSE}[{val}]{Colors.ENDC} "
            else:
                tape_str += f" {val}  "
        print(f"Loc: {tape_str}")

        # code window around pc
        ops = m.program.instructions
        start_op = max(0, m.pc - context_window)
        end_op = min(len(ops), m.pc + context_window + 1)
        for i in range(start_op, end_op):
            mark = "*" if i in self.breakpoints else " "
            line = f"{i:04}: {ops[i]}  (src {m.program.source_map[i]})"
            if i == m.pc:
                print(f"{Colors.GREEN}->{mark}{line}{Colors.ENDC}")
            else:
                print(f"  {mark}{line}")

        if m.halted:
            print(f"{Colors.WARNING}(halted){Colors.ENDC}")

    def cont(self):
        """Run until a breakpoint or halt. Returns the breakpoint pc, or None."""
        while self.machine.step():
            if self.machine.pc in self.breakpoints:
                print(f"Breakpoint hit at {self.machine.pc}")
                return self.machine.pc
        return None

    def reset(self):
        # reload too, so ',' sees the original input again
        self.machine.reset()
        self.machine.load(self.code_str, self.input_text)

    def mem_dump(self, addr, count):
        m = self.machine
        print("Memory Dump:")
        for i in range(addr, min(m.tape_size, addr + count)):
            marker = " <" if i == m.ptr else ""
            print(f"[{i:05}]: {m.cell(i)}{marker}")

    def execute(self, cmd):
        """Run one REPL command. Returns False when the user asked to quit."""
        cmd = cmd.strip()
        if cmd == '':
            cmd = self.last_cmd
        self.last_cmd = cmd
        parts = cmd.split()

        if cmd.startswith('q'):
            return False
        elif cmd.startswith('s'):
            try:
                count = int(parts[1]) if len(parts) > 1 else 1
            except ValueError:
                print("Usage: s [count]")
                return True
            self.machine.run_batch(count)
        elif cmd.startswith('c'):
            self.cont()
        elif cmd.startswith('m'):
            try:
                addr = int(parts[1]) if len(parts) > 1 else self.machine.ptr
                count = int(parts[2]) if len(parts) > 2 else 20
            except ValueError:
                print("Usage: m [addr] [count]")
                return True
            self.mem_dump(addr, count)
        elif cmd.startswith('b'):
            try:
                bp = int(parts[1])
            except (IndexError, ValueError):
                print("Usage: b <pc>")
                return True
            if bp in self.breakpoints:
                self.breakpoints.remove(bp)
                print(f"Breakpoint removed at {bp}")
            else:
                self.breakpoints.add(bp)
                print(f"Breakpoint set at {bp}")
        elif cmd.startswith('o'):
            print(f"Output: {self.machine.output!r}")
        elif cmd.startswith('r'):
            self.reset()
            print("Reset.")
        else:
            print(HELP)
        return True

    def run(self):
        print(f"Debugger started. {HELP}")
        while True:
            self.print_state()
            try:
                cmd = input(f"{Colors.BLUE}(bf-dbg){Colors.ENDC} ")
            except EOFError:
                break
            if not self.execute(cmd):
                break

        print(f"Output: {self.machine.output!r}")
        print("Execution finished.")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Step through a tape-machine program.")
    parser.add_argument('file')
    parser.add_argument('--input', default="", help="text fed to ',' reads")
    parser.add_argument('--tape-size', type=int, default=TAPE_SIZE)
    parser.add_argument('-v', '--verbose', action='store_true')
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    try:
        with open(args.file, 'r') as f:
            code = f.read()
    except OSError as e:
        logger.error("Cannot read %s: %s", args.file, e.strerror)
        return 1

    Debugger(code, args.input, args.tape_size).run()
    return 0


if __name__ == '__main__':
    sys.exit(main())
