"""
Shared pytest fixtures.

Living at the repo root also puts the root on sys.path, so the flat modules
(machine, bf_parser, ...) import without installing the package.
"""
import pytest

from machine import Machine

# The canonical listing; prints "Hello World!\n".
HELLO_WORLD = (
    "++++++++[>++++[>++>+++>+++>+<<<<-]>+>+>->>+[<]<-]"
    ">>.>---.+++++++..+++.>>.<-.<.+++.------.--------.>>+.>++."
)


@pytest.fixture
def hello_world():
    return HELLO_WORLD


@pytest.fixture
def machine():
    return Machine()


@pytest.fixture
def small_machine():
    return Machine(tape_size=8)
