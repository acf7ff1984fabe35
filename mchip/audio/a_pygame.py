#!/usr/bin/env python3

"""
PyGame Audio Plugin

Plays the emulated beep within PyGame / SDL.

The original hardware has a single buzzer with an 'on' or 'off' status, so the
beep is a plain square wave.  One period of it is built into an 8-bit PyGame /
SDL buffer at startup, and then looped for a fixed time whenever the sound
timer runs out.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

import pygame
from .a_null import Audio as AudioBase

PLAYBACK_FREQUENCY = 44100.0
TONE_FREQUENCY = 440.0
BEEP_DURATION_MS = 100
DEFAULT_VOLUME = 0.1


class Audio(AudioBase):
    def __init__(self):
        pygame.mixer.pre_init(int(PLAYBACK_FREQUENCY), size=8, channels=1, buffer=512, allowedchanges=0)
        pygame.mixer.init()

        # One full period of the square wave.  The first half is low, the second half high.
        period_size = int(PLAYBACK_FREQUENCY / TONE_FREQUENCY)
        half_period = period_size // 2
        self.buffer = memoryview(bytearray(b"\x00" * half_period + b"\xFF" * (period_size - half_period)))
        self.sound = pygame.mixer.Sound(buffer=self.buffer)
        self.sound.set_volume(DEFAULT_VOLUME)
        super().__init__()

    def beep(self):
        # Restart the tone if it is already playing
        self.sound.stop()
        self.sound.play(loops=-1, maxtime=BEEP_DURATION_MS)
        super().beep()

    def shutdown(self):
        self.sound.stop()
        pygame.mixer.quit()
        super().shutdown()

    def is_null(self):
        # Only the null audio device should return True
        return False
