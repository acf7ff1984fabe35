#!/usr/bin/env python3

"""
Null Audio Plugin

Serves as a base class for other Audio plugins.  Can be used on its own if no
sound is required.

The only thing asked of an audio device is a fixed-length beep, with no
parameters, whenever the sound timer runs out.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"


class Audio:
    def __init__(self):
        self.beeps = 0

    def beep(self):
        # Count them, so a silent run can still be checked
        self.beeps += 1

    def is_null(self):
        # Only the null audio device should return True
        return True

    def shutdown(self):
        pass
