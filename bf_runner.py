#!/usr/bin/env python3
import sys
import logging
import argparse

from bf_parser import parse_program, validate, UnmatchedBracketError
from machine import Machine, TAPE_SIZE

logger = logging.getLogger(__name__)


def run_bf(code, input_text="", tape_size=TAPE_SIZE, strict=False, trace=False,
           max_steps=None, out=None):
    """
    Run code to completion, writing output to out as it is produced.
    Returns the machine so callers can look at the final state.
    """
    if out is None:
        out = sys.stdout
    if strict:
        validate(parse_program(code))

    m = Machine(tape_size=tape_size)
    m.load(code, input_text)
    written = 0

    while max_steps is None or m.step_count < max_steps:
        if trace and not m.halted:
            print(f"{m.step_count:>8}  pc={m.pc:<6} {m.current_instruction}  "
                  f"ptr={m.ptr:<6} cell={m.cell(m.ptr)}", file=sys.stderr)

        alive = m.step()

        if len(m.output_chars) > written:
            out.write("".join(m.output_chars[written:]))
            out.flush()
            written = len(m.output_chars)
        if not alive:
            break

    return m


def run_file(path, input_text="", **kwargs):
    with open(path, 'r') as f:
        code = f.read()
    return run_bf(code, input_text, **kwargs)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Run a tape-machine program to completion.")
    parser.add_argument('file', help="program source")
    group = parser.add_mutually_exclusive_group()
    group.add_argument('--input', default="", help="text fed to ',' reads")
    group.add_argument('--input-file', help="read input text from a file")
    parser.add_argument('--tape-size', type=int, default=TAPE_SIZE)
    parser.add_argument('--max-steps', type=int, default=None,
                        help="give up after this many instructions")
    parser.add_argument('--strict', action='store_true',
                        help="refuse programs with unmatched brackets")
    parser.add_argument('--trace', action='store_true',
                        help="print every executed instruction to stderr")
    parser.add_argument('-v', '--verbose', action='store_true')
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    input_text = args.input
    try:
        if args.input_file:
            with open(args.input_file, 'r') as f:
                input_text = f.read()
        m = run_file(args.file, input_text, tape_size=args.tape_size, strict=args.strict,
                     trace=args.trace, max_steps=args.max_steps)
    except OSError as e:
        logger.error("Cannot read %s", e.filename)
        return 1
    except UnmatchedBracketError as e:
        logger.error("%s", e)
        return 1

    if not m.halted:
        logger.warning("Stopped after %d steps without halting (pc=%d)", m.step_count, m.pc)
        return 2
    logger.debug("Finished in %d steps", m.step_count)
    return 0


if __name__ == "__main__":
    sys.exit(main())
