"""ByteVM: a small stack-based bytecode interpreter."""

from .isa import (
    # Opcodes
    Opcode, JUMP_OPCODES, INVALID_OPCODE_BYTES, decode_opcode,
    # Instructions
    Instruction, PUSH, POP, DUP, SWAP, ADD, SUB, MUL, DIV, MOD,
    JMP, JZ, JNZ, NOP, PRINT, PRINT_CHAR, HALT,
    # Exceptions
    ByteVMException, InvalidInstruction, VMFault,
    StackUnderflow, StackOverflow, InvalidOpcode, DivisionByZero,
    InvalidJumpTarget, ProgramBoundsExceeded,
    # Serialization
    serialize_instruction, serialize_program,
    deserialize_instruction, deserialize_program,
)

from .config import VMConfig, DEFAULT_CONFIG, DEFAULT_STACK_CAPACITY

from .machine import (
    INT32_MIN, INT32_MAX, to_int32,
    OperandStack, Status, VM, execute_bytecode,
)

from .output import (
    OutputSink, EmitNumber, EmitByte, RecordingSink, StreamSink,
)

from .asm import AssemblyError, assemble, assemble_instructions, disassemble

__version__ = "0.1.0"
