from dataclasses import dataclass
from enum import IntEnum
from typing import List, Optional, Tuple

# =============================================================================
# Opcodes
# =============================================================================

class Opcode(IntEnum):
    PUSH       = 0x01
    POP        = 0x02
    DUP        = 0x03
    SWAP       = 0x04
    ADD        = 0x05
    SUB        = 0x06
    MUL        = 0x07
    DIV        = 0x08
    MOD        = 0x09
    JMP        = 0x0A
    JZ         = 0x0B
    JNZ        = 0x0C
    NOP        = 0x0D
    PRINT      = 0x0E
    PRINT_CHAR = 0x0F
    HALT       = 0x10

    @property
    def immediate_size(self) -> int:
        """Number of operand bytes that follow the opcode in the stream."""
        return 1 if self is Opcode.PUSH else 0

    @property
    def size(self) -> int:
        return 1 + self.immediate_size


JUMP_OPCODES = frozenset({Opcode.JMP, Opcode.JZ, Opcode.JNZ})

# Every byte value that decodes to nothing
INVALID_OPCODE_BYTES = tuple(sorted(set(range(0x100)) - {op.value for op in Opcode}))

# =============================================================================
# Exceptions
# =============================================================================

class ByteVMException(Exception):
    """Base exception for all ByteVM errors."""
    pass


class InvalidInstruction(ByteVMException):
    """Raised when an instruction value is malformed or bytecode cannot be deserialized."""
    pass


class VMFault(ByteVMException):
    """
    A terminal execution error.

    ``address`` is the instruction pointer of the instruction that faulted,
    or None when the fault is raised outside a running machine.
    """

    def __init__(self, message: str, address: Optional[int] = None):
        super().__init__(message)
        self.address = address

    def __str__(self) -> str:
        message = super().__str__()
        if self.address is None:
            return message
        return f"{message} (at ip {self.address})"


class StackUnderflow(VMFault):
    """Raised when popping from an empty stack."""
    pass


class StackOverflow(VMFault):
    """Raised when pushing onto a full stack."""
    pass


class InvalidOpcode(VMFault):
    """Raised when a byte matches no known opcode."""

    def __init__(self, byte: int, address: Optional[int] = None):
        super().__init__(f"Invalid opcode 0x{byte:02X}", address)
        self.byte = byte


class DivisionByZero(VMFault):
    """Raised by DIV and MOD when the divisor is zero."""
    pass


class InvalidJumpTarget(VMFault):
    """Raised when a jump target lies outside the program."""

    def __init__(self, target: int, address: Optional[int] = None):
        super().__init__(f"Invalid jump target {target}", address)
        self.target = target


class ProgramBoundsExceeded(VMFault):
    """Raised when a fetch (opcode or immediate operand) reads past the program end."""

    def __init__(self, offset: int, address: Optional[int] = None):
        super().__init__(f"Read past end of program at offset {offset}", address)
        self.offset = offset


# =============================================================================
# Decoding
# =============================================================================

def decode_opcode(byte: int) -> Opcode:
    """Map a raw byte to its opcode. Pure; does not touch any stream position."""
    try:
        return Opcode(byte)
    except ValueError:
        raise InvalidOpcode(byte) from None


# =============================================================================
# Instruction ADT
# =============================================================================

@dataclass(frozen=True)
class Instruction:
    """A decoded instruction: an opcode and, for PUSH, its immediate byte."""
    opcode: Opcode
    operand: Optional[int] = None

    def __post_init__(self):
        if self.opcode.immediate_size:
            if self.operand is None or not (0 <= self.operand <= 0xFF):
                raise InvalidInstruction(
                    f"{self.opcode.name} operand must be 0-255, got {self.operand}"
                )
        elif self.operand is not None:
            raise InvalidInstruction(f"{self.opcode.name} takes no operand, got {self.operand}")

    @property
    def size(self) -> int:
        return self.opcode.size

    def __str__(self) -> str:
        if self.operand is None:
            return self.opcode.name
        return f"{self.opcode.name} {self.operand}"


def PUSH(value: int) -> Instruction:
    return Instruction(Opcode.PUSH, value)


POP        = Instruction(Opcode.POP)
DUP        = Instruction(Opcode.DUP)
SWAP       = Instruction(Opcode.SWAP)
ADD        = Instruction(Opcode.ADD)
SUB        = Instruction(Opcode.SUB)
MUL        = Instruction(Opcode.MUL)
DIV        = Instruction(Opcode.DIV)
MOD        = Instruction(Opcode.MOD)
JMP        = Instruction(Opcode.JMP)
JZ         = Instruction(Opcode.JZ)
JNZ        = Instruction(Opcode.JNZ)
NOP        = Instruction(Opcode.NOP)
PRINT      = Instruction(Opcode.PRINT)
PRINT_CHAR = Instruction(Opcode.PRINT_CHAR)
HALT       = Instruction(Opcode.HALT)

# =============================================================================
# Serialization (Instructions -> Bytes)
# =============================================================================

def serialize_instruction(instr: Instruction) -> bytes:
    """
    Serialize a single instruction to bytes.

    Format:
        PUSH:   [0x01] [value: 1 byte]  (2 bytes total)
        others: [opcode]                (1 byte)
    """
    if instr.operand is None:
        return bytes([instr.opcode])
    return bytes([instr.opcode, instr.operand])


def serialize_program(instructions: List[Instruction]) -> bytes:
    """Serialize a list of instructions to bytecode."""
    return b''.join(serialize_instruction(instr) for instr in instructions)

# =============================================================================
# Deserialization (Bytes -> Instructions)
# =============================================================================

def deserialize_instruction(data: bytes, offset: int = 0) -> Tuple[Instruction, int]:
    """
    Deserialize a single instruction from bytes.

    Args:
        data: Bytecode buffer
        offset: Starting position in buffer

    Returns:
        Tuple of (instruction, new_offset)

    Raises:
        InvalidInstruction: If bytecode is unknown or truncated
    """
    if offset >= len(data):
        raise InvalidInstruction(
            f"Cannot deserialize from empty or truncated bytecode (offset {offset}, length {len(data)})"
        )

    try:
        opcode = decode_opcode(data[offset])
    except InvalidOpcode as e:
        raise InvalidInstruction(f"Unknown opcode 0x{e.byte:02X} at offset {offset}") from None

    if offset + opcode.size > len(data):
        raise InvalidInstruction(
            f"Truncated {opcode.name} at offset {offset}: need {opcode.size} bytes, have {len(data) - offset}"
        )
    if opcode.immediate_size:
        return Instruction(opcode, data[offset + 1]), offset + opcode.size
    return Instruction(opcode), offset + 1


def deserialize_program(data: bytes) -> List[Instruction]:
    """
    Deserialize bytecode into a list of instructions.

    This is a linear sweep: it is only meaningful for programs whose jump
    targets land on instruction boundaries.

    Raises:
        InvalidInstruction: If bytecode is invalid
    """
    instructions = []
    offset = 0

    while offset < len(data):
        instr, offset = deserialize_instruction(data, offset)
        instructions.append(instr)

    return instructions
