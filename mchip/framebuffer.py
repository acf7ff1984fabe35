#!/usr/bin/env python3

"""
Framebuffer Emulator

Pixels are written here, and are only drawn to the actual display (the host
rendering system) when the framebuffer has been marked as dirty.  This keeps
calls into PyGame/Curses down to at most one refresh per frame.

Programs for this system cannot write directly into video RAM.  Instead,
sprites are drawn to the screen using an XOR method.  Each sprite row is one
byte, with bit 7 being the leftmost pixel.

Collisions (where any pixel was set, but was unset by an XOR), are reported.

A sprite's starting position always wraps around the screen.  Pixels that
then run off the right or bottom edges are clipped, unless wrapping is
enabled, in which case they reappear on the opposite side.

The CPU only ever sets the dirty flag.  The flag is cleared once the renderer
has been handed the new frame.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

from .constants import APP_NAME, SCREEN_WIDTH, SCREEN_HEIGHT, SPRITE_WIDTH
from .ram import RAM


class FramebufferError(Exception):
    pass


class Framebuffer():
    def __init__(self, renderer, allow_wrapping=False, vid_width=SCREEN_WIDTH, vid_height=SCREEN_HEIGHT):
        if vid_width <= 0 or vid_height <= 0:
            raise FramebufferError("Screen dimensions must be positive")

        self.renderer = renderer
        self.allow_wrapping = allow_wrapping
        self.vid_width = vid_width
        self.vid_height = vid_height
        self.vid_size = vid_width * vid_height
        self.vram = RAM()
        self.vram.resize(self.vid_size)
        self.dirty = True
        self.renderer.set_resolution(vid_width, vid_height)
        self.report_perf()

    def clear(self):
        self.vram.clear()

        for y in range(self.vid_height):
            for x in range(self.vid_width):
                self._render_pixel(x, y)

        self.dirty = True

    def get_pixel(self, x, y):
        if not (0 <= x < self.vid_width and 0 <= y < self.vid_height):
            raise FramebufferError("Pixel ({}, {}) is off the screen".format(x, y))

        return self.vram.read(y * self.vid_width + x) != 0

    def get_pixels(self):
        # Row-major, one boolean per pixel
        return [pixel != 0 for pixel in self.vram.mem]

    def xor_pixel(self, x, y):
        # Returns flagging any collision, or None if the pixel fell off the screen

        if self.allow_wrapping:
            x %= self.vid_width
            y %= self.vid_height
        elif x >= self.vid_width or y >= self.vid_height:
            return None

        vram_loc = y * self.vid_width + x
        pixel = self.vram.read(vram_loc)
        collision = (pixel != 0)
        self.vram.write(vram_loc, pixel ^ 0xFF)
        self._render_pixel(x, y)

        return collision

    def draw_sprite(self, x, y, sprite):
        # Sprite is a sequence of row bytes.  Returns True if any set pixel was erased.
        x %= self.vid_width
        y %= self.vid_height
        collided = False

        for row, spr_data in enumerate(sprite):
            for col in range(SPRITE_WIDTH):
                if spr_data & (0x80 >> col):
                    if self.xor_pixel(x + col, y + row):
                        # Don't stop drawing.  Set the flag, and never unset it for this sprite.
                        collided = True

        self.dirty = True
        return collided

    def _render_pixel(self, x, y):
        # Pass the pixel on to the display's offscreen buffer
        self.renderer.set_pixel(x, y, 1 if self.vram.read(x + y * self.vid_width) else 0)

    def is_dirty(self):
        return self.dirty

    def refresh_display(self):
        # Hand the frame to the renderer only if something may have changed, then consume the flag
        if not self.dirty:
            return False

        self.renderer.refresh_display(True)
        self.dirty = False
        return True

    def get_vid_size(self):
        return self.vid_width, self.vid_height

    def report_perf(self, fps=0, ops=0):
        title = "{} - {} FPS, {} OPS".format(APP_NAME, fps, ops)
        self.renderer.set_title(title)
        self.renderer.refresh_display()  # Title bars may need repainting even if no pixels changed
