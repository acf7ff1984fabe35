#!/usr/bin/env python3

"""
CPU Emulator (CHIP-8)

Like a real computer, this is where most of the processing happens.  The CPU
holds the register bank (V0-Vf, the index register and the program counter),
and is wired to RAM, the call stack, the framebuffer, the input state and the
timers.

The host drives the CPU.  Once per frame it calls step_batch() to run a
bounded number of instructions, and tick_timers() to count the timers down.
Keeping the two apart lets the host (or a test) run the machine under any
scheduler it likes.

Each step fetches a big-endian opcode at the program counter, decodes it
through lookup tables into a handler, and runs the handler.  Handlers advance
the program counter themselves, unless they jump, call, or return.  Handlers
check memory ranges and the stack before changing anything, so an instruction
either runs completely or not at all.  Anything the CPU cannot execute halts
it, and only loading a new program will start it again.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

from random import randint
from .constants import (
    APP_INTRO, DEFAULT_BATCH_SIZE, FONT_HEIGHT, FONT_LOC, MAX_PROGRAM_SIZE, NUM_REGISTERS, PROGRAM_START,
    STATE_AWAITING_KEY, STATE_HALTED, STATE_RUNNING, SYSTEM_FONT
)
from .ram import RAMError
from .stack import StackError

CPU_ENDIAN = "big"  # CHIP-8 is big-endian
PC_BITMASK = 0xFFF
I_BITMASK = 0xFFFF


class CPUError(Exception):
    pass


class CPU:
    def __init__(self, ram, stack, framebuffer, inputs, timers, debugger):
        self.ram = ram
        self.stack = stack
        self.framebuffer = framebuffer
        self.inputs = inputs
        self.timers = timers
        self.debugger = debugger
        self.live_debug = self.debugger.is_live()

        # Define instruction pointers.
        # n = Nibble
        # kk = Byte
        # nnn = address
        # x/y = register (0-15)
        self.families = {
            # Instructions identified by their first nibble alone
            0x1: self._1nnn,
            0x2: self._2nnn,
            0x3: self._3xkk,
            0x4: self._4xkk,
            0x6: self._6xkk,
            0x7: self._7xkk,
            0xA: self._Annn,
            0xB: self._Bnnn,
            0xC: self._Cxkk,
            0xD: self._Dxyn
        }

        # Families needing a second lookup, and the bitmask used to build the key
        self.family_masks = {
            0x0: 0x00FF,
            0x5: 0xF00F,
            0x8: 0xF00F,
            0x9: 0xF00F,
            0xE: 0xF0FF,
            0xF: 0xF0FF
        }

        self.instructions = {
            # Instructions beginning with nibble 0x0, bitmask 0x00FF (low byte only)
            0x00E0: self._00E0,
            0x00EE: self._00EE,
            # Instructions beginning with nibble 0x5/0x8/0x9, bitmask 0xF00F
            0x5000: self._5xy0,
            0x8000: self._8xy0,
            0x8001: self._8xy1,
            0x8002: self._8xy2,
            0x8003: self._8xy3,
            0x8004: self._8xy4,
            0x8005: self._8xy5,
            0x8006: self._8xy6,
            0x8007: self._8xy7,
            0x800E: self._8xyE,
            0x9000: self._9xy0,
            # Instructions beginning with nibble 0xE/0xF, bitmask 0xF0FF
            0xE09E: self._Ex9E,
            0xE0A1: self._ExA1,
            0xF007: self._Fx07,
            0xF00A: self._Fx0A,
            0xF015: self._Fx15,
            0xF018: self._Fx18,
            0xF01E: self._Fx1E,
            0xF029: self._Fx29,
            0xF033: self._Fx33,
            0xF055: self._Fx55,
            0xF065: self._Fx65
        }

        # Initialise registers
        self.v = memoryview(bytearray(NUM_REGISTERS))  # Bytearrays are mutable, so register updates are fast
        self.i = 0  # Index register
        self.pc = PROGRAM_START
        self.opcode = 0

        # Run state
        self.state = STATE_HALTED
        self.await_register = None  # Register receiving the key while in STATE_AWAITING_KEY
        self.fault = None
        self.drawn = False  # Set by the last step if it touched the framebuffer

    def reset(self):
        # Return every part of the machine to power-on state, with the system font in place
        self.ram.clear()
        self.ram.write_block(FONT_LOC, SYSTEM_FONT)
        self.stack.clear()
        self.framebuffer.clear()
        self.timers.reset()
        self.v[:] = bytes(NUM_REGISTERS)
        self.i = 0
        self.pc = PROGRAM_START
        self.opcode = 0
        self.state = STATE_HALTED
        self.await_register = None
        self.fault = None
        self.drawn = False

    def load_program(self, program):
        # Check before resetting, so a bad ROM leaves the current machine alone
        if len(program) > MAX_PROGRAM_SIZE:
            raise CPUError(
                "Program is {} bytes, but only {} bytes fit in memory.".format(len(program), MAX_PROGRAM_SIZE)
            )

        self.reset()
        self.ram.write_block(PROGRAM_START, program)
        self.state = STATE_RUNNING

    def is_running(self):
        return self.state != STATE_HALTED

    def is_awaiting_key(self):
        return self.state == STATE_AWAITING_KEY

    def step(self):
        # Returns False if halted, so nothing was done
        if self.state == STATE_HALTED:
            return False

        self.drawn = False

        if self.state == STATE_AWAITING_KEY:
            self._poll_keypress()
            return True

        try:
            self.opcode = self.fetch()
        except RAMError as err:
            raise self._fault(str(err)) from err

        instruction = self.decode(self.opcode)

        if instruction is None:
            raise self._fault("Opcode 0x{:04x} at address 0x{:03x} is not emulated.".format(self.opcode, self.pc))

        try:
            instruction()
        except (RAMError, StackError) as err:
            raise self._fault("{} at address 0x{:03x}.".format(err, self.pc)) from err

        return True

    def step_batch(self, max_steps=DEFAULT_BATCH_SIZE):
        # Run up to max_steps, stopping early after a draw so the host can show the new frame promptly.  Returns the
        # number of steps run.
        steps = 0

        while steps < max_steps and self.state != STATE_HALTED:
            if self.state == STATE_AWAITING_KEY and self.inputs.get_keypress() is None:
                # Input state is fixed for the whole batch, so polling again would be wasted effort
                break

            self.step()
            steps += 1

            if self.drawn:
                break

        return steps

    def tick_timers(self):
        self.timers.tick()

    def fetch(self):
        return int.from_bytes(self.ram.read_block(self.pc, 2), CPU_ENDIAN, signed=False)

    def decode(self, opcode):
        # Pure lookup.  Returns the handler, or None if the opcode is not part of the instruction set.
        family = opcode >> 12
        mask = self.family_masks.get(family)

        if mask is None:
            return self.families.get(family)

        instruction = self.instructions.get(opcode & mask)

        if instruction is None and family == 0x0:
            return self._0nnn

        return instruction

    def _fault(self, reason):
        self.state = STATE_HALTED
        self.fault = reason

        return CPUError(
            (
                "Emulation halted.\n\n" +
                "{}Debug info:\n" +
                "{}\n\n{}"
            ).format(
                APP_INTRO, self.debugger.debug(self, "???", verbose=True), reason
            )
        )

    def inc_pc(self):
        self.pc = (self.pc + 2) & PC_BITMASK

    # References to Vx, Vy, byte and addr are always in the same opcode position throughout all instructions, so avoid
    # excessive code duplication (ever so slight slowdown).  Don't reference these more than necessary as they are
    # recalculated each time.
    @property
    def vx(self):
        return (self.opcode & 0xF00) >> 8

    @property
    def vy(self):
        return (self.opcode & 0xF0) >> 4

    @property
    def addr(self):
        return self.opcode & 0xFFF

    @property
    def byte(self):
        return self.opcode & 0xFF

    @property
    def nibble(self):
        return self.opcode & 0xF

    def debug(self, instruction):
        self.debugger.output(self, instruction)

    def _skip_if(self, condition):
        if condition:
            self.inc_pc()

        self.inc_pc()

    def _0nnn(self):  # SYS addr
        if self.live_debug:
            self.debug("SYS 0x{:03x}".format(self.addr))

        # Machine code routines on the original hardware.  Ignored.
        self.inc_pc()

    def _00E0(self):  # CLS
        if self.live_debug:
            self.debug("CLS")

        self.framebuffer.clear()
        self.drawn = True
        self.inc_pc()

    def _00EE(self):  # RET
        if self.live_debug:
            self.debug("RET")

        # The stack holds the address of the call itself, so step over it
        self.pc = self.stack.pop()
        self.inc_pc()

    def _1nnn(self):  # JP addr
        if self.live_debug:
            self.debug("JP 0x{:03x}".format(self.addr))

        self.pc = self.addr

    def _2nnn(self):  # CALL addr
        if self.live_debug:
            self.debug("CALL 0x{:03x}".format(self.addr))

        self.stack.push(self.pc)
        self.pc = self.addr

    def _3xkk(self):  # SE Vx, byte
        if self.live_debug:
            self.debug("SE V{:01x}, 0x{:02x}".format(self.vx, self.byte))

        self._skip_if(self.v[self.vx] == self.byte)

    def _4xkk(self):  # SNE Vx, byte
        if self.live_debug:
            self.debug("SNE V{:01x}, 0x{:02x}".format(self.vx, self.byte))

        self._skip_if(self.v[self.vx] != self.byte)

    def _5xy0(self):  # SE Vx, Vy
        if self.live_debug:
            self.debug("SE V{:01x}, V{:01x}".format(self.vx, self.vy))

        self._skip_if(self.v[self.vx] == self.v[self.vy])

    def _6xkk(self):  # LD Vx, byte
        if self.live_debug:
            self.debug("LD V{:01x}, 0x{:02x}".format(self.vx, self.byte))

        self.v[self.vx] = self.byte
        self.inc_pc()

    def _7xkk(self):  # ADD Vx, byte
        vx = self.vx
        byte = self.byte

        if self.live_debug:
            self.debug("ADD V{:01x}, 0x{:02x}".format(vx, byte))

        # No carry flag for this one
        byte += self.v[vx]
        self.v[vx] = byte & 0xFF
        self.inc_pc()

    def _8xy0(self):  # LD Vx, Vy
        if self.live_debug:
            self.debug("LD V{:01x}, V{:01x}".format(self.vx, self.vy))

        self.v[self.vx] = self.v[self.vy]
        self.inc_pc()

    def _8xy1(self):  # OR Vx, Vy
        if self.live_debug:
            self.debug("OR V{:01x}, V{:01x}".format(self.vx, self.vy))

        self.v[self.vx] |= self.v[self.vy]
        self.inc_pc()

    def _8xy2(self):  # AND Vx, Vy
        if self.live_debug:
            self.debug("AND V{:01x}, V{:01x}".format(self.vx, self.vy))

        self.v[self.vx] &= self.v[self.vy]
        self.inc_pc()

    def _8xy3(self):  # XOR Vx, Vy
        if self.live_debug:
            self.debug("XOR V{:01x}, V{:01x}".format(self.vx, self.vy))

        self.v[self.vx] ^= self.v[self.vy]
        self.inc_pc()

    # The arithmetic instructions below read both operands before writing anything.  Vf is written first, so if Vf is
    # also the destination, the result wins over the flag.

    def _8xy4(self):  # ADD Vx, Vy
        vx = self.vx
        vy = self.vy

        if self.live_debug:
            self.debug("ADD V{:01x}, V{:01x}".format(vx, vy))

        val = self.v[vx] + self.v[vy]
        self.v[0xF] = int(val > 0xFF)  # Vf is set when carrying
        self.v[vx] = val & 0xFF
        self.inc_pc()

    def _8xy5(self):  # SUB Vx, Vy
        vx = self.vx
        vy = self.vy

        if self.live_debug:
            self.debug("SUB V{:01x}, V{:01x}".format(vx, vy))

        val = self.v[vx] - self.v[vy]
        self.v[0xF] = int(val >= 0)  # Vf is set when NOT borrowing
        self.v[vx] = val & 0xFF
        self.inc_pc()

    def _8xy6(self):  # SHR Vx
        vx = self.vx

        if self.live_debug:
            self.debug("SHR V{:01x}".format(vx))

        val = self.v[vx]
        self.v[0xF] = val & 1
        self.v[vx] = val >> 1
        self.inc_pc()

    def _8xy7(self):  # SUBN Vx, Vy
        vx = self.vx
        vy = self.vy

        if self.live_debug:
            self.debug("SUBN V{:01x}, V{:01x}".format(vx, vy))

        val = self.v[vy] - self.v[vx]
        self.v[0xF] = int(val >= 0)
        self.v[vx] = val & 0xFF
        self.inc_pc()

    def _8xyE(self):  # SHL Vx
        vx = self.vx

        if self.live_debug:
            self.debug("SHL V{:01x}".format(vx))

        val = self.v[vx]
        self.v[0xF] = (val >> 7) & 1
        self.v[vx] = (val << 1) & 0xFF
        self.inc_pc()

    def _9xy0(self):  # SNE Vx, Vy
        if self.live_debug:
            self.debug("SNE V{:01x}, V{:01x}".format(self.vx, self.vy))

        self._skip_if(self.v[self.vx] != self.v[self.vy])

    def _Annn(self):  # LD I, addr
        if self.live_debug:
            self.debug("LD I, 0x{:03x}".format(self.addr))

        self.i = self.addr
        self.inc_pc()

    def _Bnnn(self):  # JP V0, addr
        if self.live_debug:
            self.debug("JP V0, 0x{:03x}".format(self.addr))

        self.pc = (self.v[0x0] + self.addr) & PC_BITMASK

    def _Cxkk(self):  # RND Vx, byte
        if self.live_debug:
            self.debug("RND V{:01x}, 0x{:02x}".format(self.vx, self.byte))

        # The ANDing here is intentional.  This is not a random number between 0 and 'byte' inclusive.  Zero is never
        # drawn from the generator itself.
        self.v[self.vx] = randint(1, 0xFF) & self.byte
        self.inc_pc()

    def _Dxyn(self):  # DRW Vx, Vy, nibble
        height = self.nibble

        if self.live_debug:
            self.debug("DRW V{:01x}, V{:01x}, 0x{:01x}".format(self.vx, self.vy, height))

        # Raises before drawing anything if the sprite runs past the end of RAM.  A zero-height sprite reads nothing.
        sprite = self.ram.read_block(self.i, height) if height else b""
        collided = self.framebuffer.draw_sprite(self.v[self.vx], self.v[self.vy], sprite)
        self.v[0xF] = int(collided)
        self.drawn = True
        self.inc_pc()

    def _Ex9E(self):  # SKP Vx
        if self.live_debug:
            self.debug("SKP V{:01x}".format(self.vx))

        self._skip_if(self.inputs.is_key_down(self.v[self.vx]))

    def _ExA1(self):  # SKNP Vx
        if self.live_debug:
            self.debug("SKNP V{:01x}".format(self.vx))

        self._skip_if(not self.inputs.is_key_down(self.v[self.vx]))

    def _Fx07(self):  # LD Vx, DT
        if self.live_debug:
            self.debug("LD V{:01x}, DT".format(self.vx))

        self.v[self.vx] = self.timers.delay
        self.inc_pc()

    def _Fx0A(self):  # LD Vx, K
        if self.live_debug:
            self.debug("LD V{:01x}, K".format(self.vx))

        # Timers and the display must keep going while we wait, so rather than blocking, the CPU switches state.  Steps
        # then poll the inputs instead of fetching, and the program counter stays put until a key turns up.
        self.state = STATE_AWAITING_KEY
        self.await_register = self.vx
        self._poll_keypress()

    def _poll_keypress(self):
        key = self.inputs.get_keypress()

        if key is not None:
            self.v[self.await_register] = key
            self.await_register = None
            self.state = STATE_RUNNING
            self.inc_pc()

    def _Fx15(self):  # LD DT, Vx
        if self.live_debug:
            self.debug("LD DT, V{:01x}".format(self.vx))

        self.timers.set_delay(self.v[self.vx])
        self.inc_pc()

    def _Fx18(self):  # LD ST, Vx
        if self.live_debug:
            self.debug("LD ST, V{:01x}".format(self.vx))

        self.timers.set_sound(self.v[self.vx])
        self.inc_pc()

    def _Fx1E(self):  # ADD I, Vx
        if self.live_debug:
            self.debug("ADD I, V{:01x}".format(self.vx))

        # I may point past the end of RAM.  That is only an error if something then reads or writes through it.
        self.i = (self.i + self.v[self.vx]) & I_BITMASK
        self.inc_pc()

    def _Fx29(self):  # LD F, Vx
        if self.live_debug:
            self.debug("LD F, V{:01x}".format(self.vx))

        self.i = FONT_LOC + FONT_HEIGHT * self.v[self.vx]
        self.inc_pc()

    def _Fx33(self):  # LD B, Vx
        if self.live_debug:
            self.debug("LD B, V{:01x}".format(self.vx))

        val = self.v[self.vx]
        self.ram.write_block(self.i, bytes((
            val // 100,        # Most-significant digit
            (val // 10) % 10,  # Middle digit
            val % 10           # Least-significant digit
        )))
        self.inc_pc()

    def _Fx55(self):  # LD [I], Vx
        if self.live_debug:
            self.debug("LD [I], V{:01x}".format(self.vx))

        # Ensure with +1s that the final register is copied.  I is left alone.
        self.ram.write_block(self.i, self.v[:self.vx + 1])
        self.inc_pc()

    def _Fx65(self):  # LD Vx, [I]
        if self.live_debug:
            self.debug("LD V{:01x}, [I]".format(self.vx))

        vx = self.vx
        self.v[:vx + 1] = self.ram.read_block(self.i, vx + 1)
        self.inc_pc()
