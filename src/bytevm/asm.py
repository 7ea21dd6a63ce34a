"""
Text assembler and disassembler for ByteVM bytecode.

Source format, one instruction per line:

    ; countdown from 3
    start:  PUSH 3
    loop:   DUP
            PRINT
            PUSH 1
            SUB
            DUP
            PUSH loop
            JNZ
            POP
            HALT

Mnemonics are case-insensitive. ``;`` and ``#`` start comments. PUSH accepts
a decimal or ``0x`` hex integer, a character literal such as ``'H'``, or a
label name; the value must fit in one byte.
"""

import re
from typing import Dict, List, Tuple

from .isa import (
    ByteVMException, Instruction, Opcode,
    decode_opcode, InvalidOpcode, serialize_program,
)

_LABEL_RE = re.compile(r'^([A-Za-z_][A-Za-z0-9_]*):')
_CHAR_RE = re.compile(r"^'(\\.|[^\\'])'$")
_ESCAPES = {'n': '\n', 't': '\t', 'r': '\r', '0': '\0', '\\': '\\', "'": "'"}


class AssemblyError(ByteVMException):
    """Raised when assembly source cannot be translated."""

    def __init__(self, message: str, line: int):
        super().__init__(f"line {line}: {message}")
        self.line = line


def _strip_comment(line: str) -> str:
    # A ';' or '#' inside a character literal is not a comment
    in_char = False
    escaped = False
    for i, ch in enumerate(line):
        if escaped:
            escaped = False
        elif in_char and ch == '\\':
            escaped = True
        elif ch == "'":
            in_char = not in_char
        elif ch in ';#' and not in_char:
            return line[:i]
    return line


def _parse_lines(source: str) -> List[Tuple[int, List[str], str, List[str]]]:
    """Split source into (line number, labels, mnemonic, operands); mnemonic may be empty."""
    parsed = []
    for lineno, raw in enumerate(source.splitlines(), start=1):
        text = _strip_comment(raw).strip()
        labels = []
        while (m := _LABEL_RE.match(text)):
            labels.append(m.group(1))
            text = text[m.end():].strip()
        if not text:
            if labels:
                parsed.append((lineno, labels, '', []))
            continue
        parts = text.split(None, 1)
        operands = [parts[1].strip()] if len(parts) > 1 else []
        parsed.append((lineno, labels, parts[0].upper(), operands))
    return parsed


def _parse_operand(token: str, labels: Dict[str, int], lineno: int) -> int:
    if (m := _CHAR_RE.match(token)):
        body = m.group(1)
        ch = _ESCAPES.get(body[1]) if body.startswith('\\') else body
        if ch is None:
            raise AssemblyError(f"unknown escape {body!r}", lineno)
        value = ord(ch)
    elif token in labels:
        value = labels[token]
    else:
        try:
            value = int(token, 0)
        except ValueError:
            raise AssemblyError(f"undefined label or bad literal {token!r}", lineno) from None
    if not (0 <= value <= 0xFF):
        raise AssemblyError(f"operand {token!r} = {value} does not fit in a byte", lineno)
    return value


def assemble_instructions(source: str) -> List[Instruction]:
    """Two passes: lay out label addresses, then encode."""
    lines = _parse_lines(source)

    labels: Dict[str, int] = {}
    address = 0
    for lineno, line_labels, mnemonic, _ in lines:
        for label in line_labels:
            if label in labels:
                raise AssemblyError(f"duplicate label {label!r}", lineno)
            labels[label] = address
        if mnemonic:
            try:
                address += Opcode[mnemonic].size
            except KeyError:
                raise AssemblyError(f"unknown mnemonic {mnemonic!r}", lineno) from None

    instructions = []
    for lineno, _, mnemonic, operands in lines:
        if not mnemonic:
            continue
        opcode = Opcode[mnemonic]
        if len(operands) != opcode.immediate_size:
            raise AssemblyError(
                f"{mnemonic} takes {opcode.immediate_size} operand(s), got {len(operands)}", lineno
            )
        operand = _parse_operand(operands[0], labels, lineno) if operands else None
        instructions.append(Instruction(opcode, operand))
    return instructions


def assemble(source: str) -> bytes:
    """Assemble source text to bytecode."""
    return serialize_program(assemble_instructions(source))


def disassemble(data: bytes) -> List[str]:
    """
    Linear-sweep listing, one line per instruction: ``addr: MNEMONIC [operand]``.

    Unknown bytes and a truncated trailing PUSH are shown as ``.byte 0xNN``
    so any byte string can be listed.
    """
    listing = []
    offset = 0
    while offset < len(data):
        byte = data[offset]
        try:
            opcode = decode_opcode(byte)
        except InvalidOpcode:
            listing.append(f"{offset:04d}: .byte 0x{byte:02X}")
            offset += 1
            continue
        if offset + opcode.size > len(data):
            listing.append(f"{offset:04d}: .byte 0x{byte:02X}  ; truncated {opcode.name}")
            offset += 1
            continue
        if opcode.immediate_size:
            listing.append(f"{offset:04d}: {opcode.name} {data[offset + 1]}")
        else:
            listing.append(f"{offset:04d}: {opcode.name}")
        offset += opcode.size
    return listing
