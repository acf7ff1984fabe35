#!/usr/bin/env python3

"""
Timer Emulator

The delay and sound timers are 8-bit counters which count down to zero at
60Hz.  They are ticked by the host once per frame, however many instructions
the CPU managed to execute during that frame.

The audio device is told to play its tone on the tick where the sound timer
drops from a positive value to zero.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"


class Timers:
    def __init__(self, audio):
        self.audio = audio
        self.reset()

    def reset(self):
        self.delay = 0
        self.sound = 0

    def set_delay(self, value):
        self.delay = value & 0xFF

    def set_sound(self, value):
        self.sound = value & 0xFF

    def tick(self):
        if self.delay > 0:
            self.delay -= 1

        if self.sound > 0:
            self.sound -= 1

            if self.sound == 0:
                self.audio.beep()
