#!/usr/bin/env python3

"""
Host Scheduler

Drives the emulated machine at a fixed frame rate.  Each frame, the host:
    * Processes input messages, so the key state is fixed for the frame
    * Runs a bounded batch of CPU steps (if a program is running)
    * Ticks the delay and sound timers exactly once
    * Hands the framebuffer to the renderer, if anything was drawn
    * Waits for the next frame

Frames are kept on a fixed grid of deadlines.  Each deadline is one frame
interval after the last one, rather than after the moment we woke up, so small
scheduling delays do not build up over time.  If the host falls more than a
whole frame behind, the grid restarts from the current time instead of
rushing through the missed frames.

The clock and sleep functions can be swapped out, so tests can run frames
without waiting on real time.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

from time import perf_counter, sleep
from .constants import DEFAULT_BATCH_SIZE, TICK_FREQ


class FrameClock:
    def __init__(self, frequency=TICK_FREQ, clock=perf_counter, sleeper=sleep):
        self.interval = 1.0 / frequency
        self.clock = clock
        self.sleeper = sleeper
        self.last_tick = clock()

    def now(self):
        return self.clock()

    def wait(self):
        # Returns the time of the frame just started
        deadline = self.last_tick + self.interval
        now = self.clock()

        if now < deadline:
            self.sleeper(deadline - now)
            self.last_tick = deadline
        elif now - deadline > self.interval:
            self.last_tick = now
        else:
            self.last_tick = deadline

        return self.last_tick


class Scheduler:
    def __init__(self, cpu, framebuffer, inputs, frame_clock, batch_size=DEFAULT_BATCH_SIZE):
        self.cpu = cpu
        self.framebuffer = framebuffer
        self.inputs = inputs
        self.frame_clock = frame_clock
        self.batch_size = DEFAULT_BATCH_SIZE if batch_size is None else batch_size

        # Performance-related vars
        self.frames = 0
        self.perf_counter_fps = 0
        self.perf_counter_ops = 0
        self.next_perf_report_time = 0

    def run_frame(self):
        # Returns True if the host asked to quit
        if self.inputs.process_messages():
            return True

        if self.cpu.is_running():
            self.perf_counter_ops += self.cpu.step_batch(self.batch_size)

        self.cpu.tick_timers()
        self.framebuffer.refresh_display()
        self.frames += 1
        self.perf_counter_fps += 1
        self._report_perf()

        return False

    def run(self, max_frames=None):
        # Run until a quit is requested, or for a set number of frames.  A CPUError stops the loop by propagating.
        while max_frames is None or self.frames < max_frames:
            if self.run_frame():
                return

            self.frame_clock.wait()

    def _report_perf(self):
        this_time = self.frame_clock.now()

        if this_time >= self.next_perf_report_time:
            self.next_perf_report_time = int(this_time) + 1.0
            self.framebuffer.report_perf(self.perf_counter_fps, self.perf_counter_ops)
            self.perf_counter_ops = 0
            self.perf_counter_fps = 0
