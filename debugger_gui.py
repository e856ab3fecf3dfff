#!/usr/bin/env python3
import sys
import logging
import tkinter as tk
from tkinter import ttk, font

from machine import Machine
from ticker import Ticker, slider_to_speed

logger = logging.getLogger(__name__)

TAPE_VIEW_RADIUS = 15  # cells shown on each side of the pointer
DEFAULT_SPEED = 70

HELLO_WORLD = (
    "++++++++[>++++[>++>+++>+++>+<<<<-]>+>+>->>+[<]<-]"
    ">>.>---.+++++++..+++.>>.<-.<.+++.------.--------.>>+.>++."
)


class AfterHandle:
    """Makes a root.after() id cancellable the way machine.pending expects."""

    def __init__(self, root, after_id):
        self.root = root
        self.after_id = after_id

    def cancel(self):
        self.root.after_cancel(self.after_id)


class DebuggerGUI:
    def __init__(self, root, code=HELLO_WORLD):
        self.root = root
        self.root.title("Tape Machine Visualizer")
        self.root.geometry("1000x700")
        self.root.minsize(800, 500)

        self.machine = Machine()
        self.ticker = Ticker(self.machine, schedule=self.schedule,
                             on_tick=lambda m: self.update_view(),
                             on_halt=lambda m: self.on_halt())

        self.setup_fonts()
        self.setup_main_ui()
        self.code_text.insert("1.0", code)
        self.speed_var.set(DEFAULT_SPEED)
        self.set_speed(DEFAULT_SPEED)
        self.reset()

    def schedule(self, delay_ms, callback):
        return AfterHandle(self.root, self.root.after(int(delay_ms), callback))

    def setup_fonts(self):
        self.code_font = font.Font(family="Courier", size=12)
        self.mem_font = font.Font(family="Courier", size=10)
        self.header_font = font.Font(size=10, weight="bold")

    def setup_main_ui(self):
        # --- Toolbar ---
        toolbar = ttk.Frame(self.root, padding=5)
        toolbar.pack(side=tk.TOP, fill=tk.X)

        self.btn_run = ttk.Button(toolbar, text="Run", command=self.run)
        self.btn_run.pack(side=tk.LEFT, padx=2)
        self.btn_step = ttk.Button(toolbar, text="Step", command=self.step)
        self.btn_step.pack(side=tk.LEFT, padx=2)
        self.btn_pause = ttk.Button(toolbar, text="Pause", command=self.pause, state=tk.DISABLED)
        self.btn_pause.pack(side=tk.LEFT, padx=2)
        ttk.Button(toolbar, text="Reset", command=self.reset).pack(side=tk.LEFT, padx=2)

        ttk.Label(toolbar, text="Speed").pack(side=tk.LEFT, padx=(15, 2))
        self.speed_var = tk.IntVar()
        ttk.Scale(toolbar, from_=0, to=100, variable=self.speed_var,
                  command=self.set_speed).pack(side=tk.LEFT, padx=2)

        self.status_var = tk.StringVar(value="Ready")
        ttk.Label(toolbar, textvariable=self.status_var).pack(side=tk.RIGHT, padx=5)

        # --- Tape ---
        tape_frame = ttk.LabelFrame(self.root, text="Tape")
        tape_frame.pack(side=tk.TOP, fill=tk.X, padx=5, pady=5)
        self.tape_cells = []
        for col in range(2 * TAPE_VIEW_RADIUS + 1):
            idx = tk.Label(tape_frame, font=self.mem_font, width=5)
            val = tk.Label(tape_frame, font=self.mem_font, width=5, borderwidth=1, relief="solid")
            idx.grid(row=0, column=col, padx=1)
            val.grid(row=1, column=col, padx=1, pady=1)
            self.tape_cells.append((idx, val))

        # --- Source ---
        main_container = ttk.Frame(self.root)
        main_container.pack(fill=tk.BOTH, expand=True, padx=5, pady=5)

        code_frame = ttk.LabelFrame(main_container, text="Source Code")
        code_frame.pack(side=tk.LEFT, fill=tk.BOTH, expand=True)
        self.code_text = tk.Text(code_frame, font=self.code_font, wrap=tk.CHAR, undo=True)
        self.code_text.pack(side=tk.LEFT, fill=tk.BOTH, expand=True)
        scrollbar = ttk.Scrollbar(code_frame, orient=tk.VERTICAL, command=self.code_text.yview)
        scrollbar.pack(side=tk.RIGHT, fill=tk.Y)
        self.code_text.config(yscrollcommand=scrollbar.set)
        self.code_text.tag_configure("highlight", background="yellow", foreground="black")
        self.code_text.bind("<<Modified>>", self.on_code_changed)

        # --- Input / Output ---
        io_frame = ttk.Frame(main_container)
        io_frame.pack(side=tk.RIGHT, fill=tk.BOTH, expand=True, padx=(5, 0))

        ttk.Label(io_frame, text="Input", font=self.header_font).pack(anchor=tk.W)
        self.input_var = tk.StringVar()
        ttk.Entry(io_frame, textvariable=self.input_var, font=self.code_font).pack(fill=tk.X)

        ttk.Label(io_frame, text="Output", font=self.header_font).pack(anchor=tk.W, pady=(10, 0))
        self.output_text = tk.Text(io_frame, font=self.code_font, height=10, state=tk.DISABLED)
        self.output_text.pack(fill=tk.BOTH, expand=True)

    # --- machine control ---

    def load(self):
        self.machine.load(self.code_text.get("1.0", "end-1c"), self.input_var.get())

    def step(self):
        if self.machine.program_length == 0:
            self.load()
        can_continue = self.machine.step()
        self.update_view()
        if not can_continue:
            self.on_halt()
        return can_continue

    def run(self):
        if self.ticker.running:
            return
        if self.machine.halted:
            self.load()

        self.btn_run.config(state=tk.DISABLED)
        self.btn_step.config(state=tk.DISABLED)
        self.btn_pause.config(state=tk.NORMAL)
        self.code_text.config(state=tk.DISABLED)
        self.ticker.start()

    def pause(self):
        self.ticker.pause()
        self.btn_run.config(state=tk.NORMAL)
        self.btn_step.config(state=tk.NORMAL)
        self.btn_pause.config(state=tk.DISABLED)
        self.code_text.config(state=tk.NORMAL)
        self.update_status()

    def on_halt(self):
        self.pause()
        self.status_var.set(f"Finished after {self.machine.step_count} steps")

    def reset(self):
        self.pause()
        self.machine.reset()
        self.load()
        self.update_view()

    def set_speed(self, value):
        delay, steps = slider_to_speed(float(value))
        self.machine.delay = delay
        self.machine.steps_per_tick = steps

    def on_code_changed(self, event):
        if not self.code_text.edit_modified():
            return
        self.code_text.edit_modified(False)
        if not self.ticker.running:
            self.reset()

    # --- view ---

    def update_status(self):
        m = self.machine
        self.status_var.set(f"Step: {m.step_count} | PC: {m.pc}/{m.program_length} | "
                            f"Ptr: {m.ptr} | Cell: {m.cell(m.ptr)} | {m.run_state.value}")

    def update_view(self):
        m = self.machine

        start, values = m.tape_window(TAPE_VIEW_RADIUS)
        for col, (idx, val) in enumerate(self.tape_cells):
            if col < len(values):
                addr = start + col
                idx.config(text=str(addr))
                if addr == m.ptr:
                    val.config(text=f"{values[col]:03}", bg="blue", fg="white")
                else:
                    val.config(text=f"{values[col]:03}", bg="white", fg="black")
            else:
                idx.config(text="")
                val.config(text="", bg="white")

        # current instruction
        self.code_text.tag_remove("highlight", "1.0", tk.END)
        offset = m.source_offset
        if offset is not None:
            pos = f"1.0+{offset}c"
            self.code_text.tag_add("highlight", pos, f"{pos}+1c")
            self.code_text.see(pos)

        self.output_text.config(state=tk.NORMAL)
        self.output_text.delete("1.0", tk.END)
        self.output_text.insert("1.0", m.output)
        self.output_text.config(state=tk.DISABLED)

        self.update_status()

        # Force UI update (Critical for macOS)
        self.root.update_idletasks()


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    logging.basicConfig(level=logging.INFO)

    code = HELLO_WORLD
    if argv:
        try:
            with open(argv[0], 'r') as f:
                code = f.read()
        except OSError as e:
            logger.error("Cannot read %s: %s", argv[0], e.strerror)
            return 1

    root = tk.Tk()
    DebuggerGUI(root, code)
    root.mainloop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
