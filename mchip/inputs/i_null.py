#!/usr/bin/env python3

"""
Null Input Plugin

Serves as a base class for other Input plugins, and owns the input state seen
by the CPU: one slot per hex key, 0x0 to 0xF.  Plugins write the slots while
processing host messages, which happens before each batch of CPU steps.  The
CPU only ever reads them.

Can be used on its own if zero input functionality is required, and the slots
can be driven directly with set_key().
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

from ..constants import NUM_KEYS


class InputsError(Exception):
    pass


class Inputs:
    def __init__(self, keymap, renderer, force_lowercase=False):
        self.keymap_dict = {}
        self.renderer = renderer
        self.key_down = [False] * NUM_KEYS
        keymap_split = keymap.split(",")

        if len(keymap_split) != NUM_KEYS:
            raise InputsError("Incorrect number of keys defined -- 16 required.  Use commas to split numbers")

        for key_num, key_defined in enumerate(keymap_split):
            try:
                key_defined_ord = int(key_defined)
            except ValueError:
                raise InputsError("Defined keys are not all integer values") from None

            if force_lowercase:
                # If we are working with characters rather than keyscan codes, we should convert to lowercase
                key_defined_ord = ord(chr(key_defined_ord).lower())

            if key_defined_ord in self.keymap_dict:
                raise InputsError("Duplicate keys defined")

            self.keymap_dict[key_defined_ord] = key_num

    def process_messages(self):
        return False  # Don't exit the program

    def set_key(self, key, down):
        if not 0 <= key < NUM_KEYS:
            raise InputsError("Key 0x{:x} is outside the keypad".format(key))

        self.key_down[key] = down

    def is_key_down(self, key):
        # Registers can hold values above 0xF, but there are no such keys to hold down
        return 0 <= key < NUM_KEYS and self.key_down[key]

    def get_keypress(self):
        # Lowest numbered key held, if any
        for key, down in enumerate(self.key_down):
            if down:
                return key

        return None

    def shutdown(self):
        pass
