#!/usr/bin/env python3

"""
Host I/O Functionality

Handles loading ROM binaries for later writing into RAM.  ROMs have no header,
and are loaded verbatim at the program start address, so the only check needed
is that they fit.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

from .constants import MAX_PROGRAM_SIZE


class LoaderError(Exception):
    pass


class Loader:
    def load_binary(self, filename):
        with open(filename, "rb") as f:
            return f.read()

    def load_rom(self, filename):
        data = self.load_binary(filename)

        if len(data) > MAX_PROGRAM_SIZE:
            raise LoaderError(
                "ROM '{}' is {} bytes, but the largest supported is {} bytes.".format(
                    filename, len(data), MAX_PROGRAM_SIZE
                )
            )

        return data
