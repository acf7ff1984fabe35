#!/usr/bin/env python3

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

import unittest
from mchip.timers import Timers
from mchip.audio.a_null import Audio


class TestTimers(unittest.TestCase):
    def setUp(self):
        self.audio = Audio()
        self.timers = Timers(self.audio)

    def test_timers_init(self):
        self.assertEqual(0, self.timers.delay)
        self.assertEqual(0, self.timers.sound)

    def test_timers_count_down(self):
        self.timers.set_delay(3)
        self.timers.set_sound(2)

        for delay, sound in (2, 1), (1, 0), (0, 0), (0, 0):
            self.timers.tick()
            self.assertEqual(delay, self.timers.delay)
            self.assertEqual(sound, self.timers.sound)

    def test_timers_independent(self):
        self.timers.set_sound(1)
        self.timers.tick()
        self.assertEqual(0, self.timers.delay)
        self.assertEqual(0, self.timers.sound)

    def test_timers_beep_on_sound_expiry(self):
        self.timers.set_sound(2)
        self.timers.tick()
        self.assertEqual(0, self.audio.beeps)
        self.timers.tick()
        self.assertEqual(1, self.audio.beeps)

        # Already at zero, so no further beeps
        self.timers.tick()
        self.assertEqual(1, self.audio.beeps)

    def test_timers_no_beep_when_idle(self):
        self.timers.set_delay(1)
        self.timers.tick()
        self.assertEqual(0, self.audio.beeps)

    def test_timers_masked(self):
        self.timers.set_delay(0x1FF)
        self.assertEqual(0xFF, self.timers.delay)

    def test_timers_reset(self):
        self.timers.set_delay(5)
        self.timers.set_sound(6)
        self.timers.reset()
        self.assertEqual((0, 0), (self.timers.delay, self.timers.sound))
