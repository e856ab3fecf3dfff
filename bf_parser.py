"""Turn raw source text into the instruction string the machine executes."""

COMMANDS = "><+-.,[]"


class UnmatchedBracketError(ValueError):
    def __init__(self, offsets):
        self.offsets = list(offsets)
        where = ", ".join(str(o) for o in self.offsets)
        super().__init__(f"Unmatched bracket at source offset {where}")


class Program:
    """
    A loaded program.

    instructions: only the command characters, in source order.
    source_map:   source_map[i] is the offset of instructions[i] in the text.
    jumps:        jumps[i] is the partner of the bracket at i. An unmatched
                  '[' points at len(instructions), an unmatched ']' at -1.
                  Every other slot is None.
    """

    def __init__(self, source, instructions, source_map):
        self.source = source
        self.instructions = instructions
        self.source_map = tuple(source_map)
        self.jumps = build_jump_table(instructions)

    def __len__(self):
        return len(self.instructions)

    def __repr__(self):
        return f"Program({len(self.instructions)} ops)"


def parse_program(source):
    ops = []
    offsets = []
    for i, c in enumerate(source):
        if c in COMMANDS:
            ops.append(c)
            offsets.append(i)
    return Program(source, "".join(ops), offsets)


def build_jump_table(instructions):
    jumps = [None] * len(instructions)
    loop_stack = []

    for i, c in enumerate(instructions):
        if c == '[':
            loop_stack.append(i)
        elif c == ']':
            if loop_stack:
                start = loop_stack.pop()
                jumps[start] = i
                jumps[i] = start
            else:
                # nothing to jump back to, the backward scan runs off the start
                jumps[i] = -1

    # forward scans run off the end
    for start in loop_stack:
        jumps[start] = len(instructions)

    return tuple(jumps)


def find_unmatched(instructions):
    """Instruction indices of brackets that have no partner, in order."""
    jumps = build_jump_table(instructions)
    end = len(instructions)
    return [i for i, target in enumerate(jumps) if target == -1 or target == end]


def validate(program):
    """Strict pass: raise UnmatchedBracketError if any bracket is unpaired."""
    bad = find_unmatched(program.instructions)
    if bad:
        raise UnmatchedBracketError(program.source_map[i] for i in bad)
    return program
