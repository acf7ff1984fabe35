#!/usr/bin/env python3

"""
Stack Emulator

The call stack has no specified location in system RAM, and no stack pointer
register is exposed to the running program, so it is kept in host memory as a
plain list.  The list length acts as the stack pointer.

The depth is bounded.  Calling past the bound, or returning with nothing on
the stack, is reported as an error rather than reading garbage.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"


class StackError(Exception):
    pass


class Stack:
    def __init__(self, size):
        self.items = []
        self.size = size

    def push(self, item):
        # Fetching the stack size with 'len' should be immediate, so no slow loop
        if len(self.items) >= self.size:
            raise StackError("Stack overflow")

        self.items.append(item)

    def pop(self):
        try:
            return self.items.pop()
        except IndexError:
            raise StackError("Stack underflow") from None

    def clear(self):
        self.items.clear()

    def get_pointer(self):
        return len(self.items)

    def get_items(self):
        # For debugging
        return self.items
