"""
Code 128 symbol value decoder.

Turns the raw symbol values of a Code 128 barcode (start code, data,
checksum, stop code) into text. Function codes are rendered as the literal
tokens {FNC1}, {FNC2}, {FNC3} and {FNC4}.

Decoding is best effort: a missing start code yields an empty string and
values that are invalid for the active code set are skipped.
"""

from collections.abc import Sequence
from functools import reduce
from typing import NamedTuple

from barscan.barcode.interleave import START_A, START_B, START_C, STOP
from barscan.models.scan import CodeSet

CODE_C = 99
CODE_B = 100
CODE_A = 101
FNC1 = 102
FNC2 = 97
FNC3 = 96
SHIFT = 98

START_SETS = {
    START_A: CodeSet.A,
    START_B: CodeSet.B,
    START_C: CodeSet.C,
}

FUNCTION_TOKENS = {
    FNC1: "{FNC1}",
    FNC2: "{FNC2}",
    FNC3: "{FNC3}",
}

FNC4_TOKEN = "{FNC4}"

# Highest data value per code set
MAX_AB_VALUE = 95
MAX_C_VALUE = 99


class DecodeState(NamedTuple):
    """Decoder state carried from one symbol to the next."""

    code_set: CodeSet
    shifted: bool = False
    parts: tuple[str, ...] = ()

    def emit(self, text: str | None) -> "DecodeState":
        if not text:
            return self._replace(shifted=False)
        return self._replace(shifted=False, parts=self.parts + (text,))

    @property
    def text(self) -> str:
        return "".join(self.parts)


def render_set_a(value: int) -> str | None:
    """Render a set A value; control characters become a \\xNN escape."""
    if not 0 <= value <= MAX_AB_VALUE:
        return None
    if value >= 32:
        return chr(value)
    return f"\\x{value:02x}"


def render_set_b(value: int) -> str | None:
    """Render a set B value (printable ASCII starting at space)."""
    if not 0 <= value <= MAX_AB_VALUE:
        return None
    return chr(value + 32)


def render_set_c(value: int) -> str | None:
    """Render a set C value as a zero-padded digit pair."""
    if not 0 <= value <= MAX_C_VALUE:
        return None
    return f"{value:02d}"


RENDERERS = {
    CodeSet.A: render_set_a,
    CodeSet.B: render_set_b,
    CodeSet.C: render_set_c,
}

SHIFT_TARGET = {
    CodeSet.A: CodeSet.B,
    CodeSet.B: CodeSet.A,
}


def data_window(values: Sequence[int]) -> list[int]:
    """
    Slice out the data symbols between the start code and the checksum.

    The checksum is the value right before the last stop code, or the last
    value when no stop code is present.
    """
    codes = list(values)
    stop_positions = [i for i, code in enumerate(codes) if code == STOP]
    end = stop_positions[-1] if stop_positions else len(codes)
    return codes[1 : max(end - 1, 1)]


class Code128Decoder:
    """
    Decoder for Code 128 symbol values.

    Code 128 has no dedicated FNC4 symbol in sets A and B: it shares its
    value with the CODE A / CODE B switch of the active set. Some encoders
    rely on that and others emit redundant switches, so rendering a
    redundant switch as {FNC4} can be turned off.
    """

    def __init__(self, emit_fnc4_on_redundant_switch: bool = True):
        """
        Initialize decoder.

        Args:
            emit_fnc4_on_redundant_switch: Render CODE A in set A and
                CODE B in set B as {FNC4} instead of ignoring them
        """
        self.emit_fnc4_on_redundant_switch = emit_fnc4_on_redundant_switch

    def decode(self, values: Sequence[int] | None) -> str:
        """
        Decode raw symbol values to text.

        Args:
            values: Symbol values, starting with a start code

        Returns:
            Decoded text, or an empty string if the values cannot be decoded
        """
        if values is None or isinstance(values, str):
            return ""

        try:
            codes = [int(v) for v in values]
        except (TypeError, ValueError):
            return ""

        if not codes or codes[0] not in START_SETS:
            return ""

        initial = DecodeState(code_set=START_SETS[codes[0]])
        return reduce(self._step, data_window(codes), initial).text

    def _step(self, state: DecodeState, code: int) -> DecodeState:
        """Apply one symbol value to the decoder state."""
        if state.shifted:
            # SHIFT in set C swallows the next value
            if state.code_set == CodeSet.C:
                return state.emit(None)
            return state.emit(RENDERERS[SHIFT_TARGET[state.code_set]](code))

        if code in FUNCTION_TOKENS:
            return state.emit(FUNCTION_TOKENS[code])

        if code == SHIFT:
            return state._replace(shifted=True)

        if code == CODE_A:
            return self._switch(state, CodeSet.A)
        if code == CODE_B:
            return self._switch(state, CodeSet.B)
        if code == CODE_C:
            return state._replace(code_set=CodeSet.C)

        return state.emit(RENDERERS[state.code_set](code))

    def _switch(self, state: DecodeState, target: CodeSet) -> DecodeState:
        if state.code_set != target:
            return state._replace(code_set=target)
        if self.emit_fnc4_on_redundant_switch:
            return state.emit(FNC4_TOKEN)
        return state


def decode_code128(
    values: Sequence[int] | None,
    emit_fnc4_on_redundant_switch: bool = True,
) -> str:
    """
    Convenience function to decode Code 128 symbol values.

    Args:
        values: Symbol values, starting with a start code
        emit_fnc4_on_redundant_switch: Render redundant switches as {FNC4}

    Returns:
        Decoded text, empty on failure
    """
    decoder = Code128Decoder(emit_fnc4_on_redundant_switch=emit_fnc4_on_redundant_switch)
    return decoder.decode(values)
