"""Timer-driven stepping for hosts that animate the machine."""
import logging
import math

from machine import RunState

logger = logging.getLogger(__name__)


def slider_to_speed(value):
    """
    Map a 0-100 speed slider to (delay_ms, steps_per_tick).

    Up to 80 the slider only shortens the delay (10ms per notch). Past 80 the
    delay is 0 and the batch size grows exponentially: 81 -> 1, 90 -> 357,
    100 -> 127482.
    """
    value = max(0, min(100, int(value)))
    if value <= 80:
        return max(0, (80 - value) * 10), 1
    return 0, math.floor(1.8 ** (value - 80))


class Ticker:
    """
    Runs machine.run_batch() once per tick and reschedules itself until the
    machine halts or is paused.

    schedule(delay_ms, callback) must return a handle with cancel(); the
    handle is parked on machine.pending so machine.reset() and
    machine.pause() cancel it. Ticks have to come back on the thread that
    owns the machine (tkinter after(), a browser timer posting /step).
    """

    def __init__(self, machine, schedule, on_tick=None, on_halt=None):
        self.machine = machine
        self.schedule = schedule
        self.on_tick = on_tick
        self.on_halt = on_halt

    @property
    def running(self):
        return self.machine.run_state is RunState.RUNNING

    def start(self):
        if self.running:
            return
        self.machine.start()
        self.tick()

    def pause(self):
        self.machine.pause()

    def tick(self):
        self.machine.pending = None
        if not self.running:
            return

        can_continue = self.machine.run_batch()
        if self.on_tick:
            self.on_tick(self.machine)

        if not can_continue:
            logger.debug("Ticker stopped: machine halted")
            self.machine.pause()
            if self.on_halt:
                self.on_halt(self.machine)
        elif self.running:
            self.machine.pending = self.schedule(self.machine.delay, self.tick)
