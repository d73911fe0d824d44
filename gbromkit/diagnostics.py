"""Assembler diagnostics: errors, fatal errors and configurable warnings."""

from __future__ import annotations

import sys
from collections.abc import Callable
from enum import Enum, IntEnum
from typing import NoReturn, TextIO

from gbromkit.errors import FatalError, errx, warnx


class WarningID(IntEnum):
    """Every warning that can be individually controlled."""

    ASSERT = 0
    BACKWARDS_FOR = 1
    BUILTIN_ARG = 2
    CHARMAP_REDEF = 3
    DIV = 4
    EMPTY_DATA_DIRECTIVE = 5
    EMPTY_MACRO_ARG = 6
    EMPTY_STRRPL = 7
    LARGE_CONSTANT = 8
    LONG_STR = 9
    MACRO_SHIFT = 10
    NESTED_COMMENT = 11
    OBSOLETE = 12
    SHIFT = 13
    SHIFT_AMOUNT = 14
    USER = 15
    NUMERIC_STRING_1 = 16
    NUMERIC_STRING_2 = 17
    TRUNCATION_1 = 18
    TRUNCATION_2 = 19

    @property
    def flag(self) -> str:
        """The command-line name of this warning."""
        return _FLAG_NAMES[self]


class WarningState(Enum):
    DEFAULT = "default"
    DISABLED = "disabled"
    ENABLED = "enabled"
    ERROR = "error"


class AssemblyFatalError(FatalError):
    """Raised after a fatal assembly error has been reported."""


_FLAG_NAMES = {
    WarningID.ASSERT: "assert",
    WarningID.BACKWARDS_FOR: "backwards-for",
    WarningID.BUILTIN_ARG: "builtin-args",
    WarningID.CHARMAP_REDEF: "charmap-redef",
    WarningID.DIV: "div",
    WarningID.EMPTY_DATA_DIRECTIVE: "empty-data-directive",
    WarningID.EMPTY_MACRO_ARG: "empty-macro-arg",
    WarningID.EMPTY_STRRPL: "empty-strrpl",
    WarningID.LARGE_CONSTANT: "large-constant",
    WarningID.LONG_STR: "long-string",
    WarningID.MACRO_SHIFT: "macro-shift",
    WarningID.NESTED_COMMENT: "nested-comment",
    WarningID.OBSOLETE: "obsolete",
    WarningID.SHIFT: "shift",
    WarningID.SHIFT_AMOUNT: "shift-amount",
    WarningID.USER: "user",
    WarningID.NUMERIC_STRING_1: "numeric-string",
    WarningID.NUMERIC_STRING_2: "numeric-string",
    WarningID.TRUNCATION_1: "truncation",
    WarningID.TRUNCATION_2: "truncation",
}

_PLAIN_WARNINGS = tuple(w for w in WarningID if w < WarningID.NUMERIC_STRING_1)

_E, _D = WarningState.ENABLED, WarningState.DISABLED
_DEFAULTS = {
    WarningID.ASSERT: _E,
    WarningID.BACKWARDS_FOR: _D,
    WarningID.BUILTIN_ARG: _D,
    WarningID.CHARMAP_REDEF: _D,
    WarningID.DIV: _D,
    WarningID.EMPTY_DATA_DIRECTIVE: _D,
    WarningID.EMPTY_MACRO_ARG: _D,
    WarningID.EMPTY_STRRPL: _D,
    WarningID.LARGE_CONSTANT: _D,
    WarningID.LONG_STR: _D,
    WarningID.MACRO_SHIFT: _D,
    WarningID.NESTED_COMMENT: _E,
    WarningID.OBSOLETE: _E,
    WarningID.SHIFT: _D,
    WarningID.SHIFT_AMOUNT: _D,
    WarningID.USER: _E,
    WarningID.NUMERIC_STRING_1: _E,
    WarningID.NUMERIC_STRING_2: _D,
    WarningID.TRUNCATION_1: _E,
    WarningID.TRUNCATION_2: _D,
}

# name, number of levels, default level, first warning of the family
_PARAM_WARNINGS = (
    ("numeric-string", 2, 1, WarningID.NUMERIC_STRING_1),
    ("truncation", 2, 2, WarningID.TRUNCATION_1),
)

_W = WarningID
_META_WARNINGS = {
    "all": (
        _W.BACKWARDS_FOR, _W.BUILTIN_ARG, _W.CHARMAP_REDEF, _W.EMPTY_DATA_DIRECTIVE,
        _W.EMPTY_STRRPL, _W.LARGE_CONSTANT, _W.LONG_STR, _W.NESTED_COMMENT,
        _W.OBSOLETE, _W.NUMERIC_STRING_1,
    ),
    "extra": (
        _W.EMPTY_MACRO_ARG, _W.MACRO_SHIFT, _W.NESTED_COMMENT, _W.OBSOLETE,
        _W.NUMERIC_STRING_2, _W.TRUNCATION_1, _W.TRUNCATION_2,
    ),
    "everything": (
        _W.BACKWARDS_FOR, _W.BUILTIN_ARG, _W.DIV, _W.EMPTY_DATA_DIRECTIVE,
        _W.EMPTY_MACRO_ARG, _W.EMPTY_STRRPL, _W.LARGE_CONSTANT, _W.LONG_STR,
        _W.MACRO_SHIFT, _W.NESTED_COMMENT, _W.OBSOLETE, _W.SHIFT, _W.SHIFT_AMOUNT,
        _W.NUMERIC_STRING_1, _W.NUMERIC_STRING_2, _W.TRUNCATION_1, _W.TRUNCATION_2,
    ),
}


class Diagnostics:
    """Tracks warning settings and reports diagnostics to a stream.

    ``location`` may be set to a callable returning the current source
    position; it is printed after the diagnostic's kind.
    """

    def __init__(self, stream: TextIO | None = None, warnings_enabled: bool = True) -> None:
        self.stream = stream
        self.warnings_enabled = warnings_enabled
        self.warnings_are_errors = False
        self.error_count = 0
        self.location: Callable[[], str] | None = None
        self.states: dict[WarningID, WarningState] = {
            warning: WarningState.DEFAULT for warning in WarningID
        }

    # Flag processing

    def process_warning_flag(self, flag: str) -> None:
        """Apply one -W flag, such as "div", "no-obsolete" or "error=shift"."""
        self._process(flag, set_error=False)

    def _process(self, flag: str, set_error: bool) -> None:
        meta = _META_WARNINGS.get(flag)
        if meta is not None:
            if set_error:
                errx(f'Cannot make meta warning "{flag}" into an error')
            for warning in meta:
                if self.states[warning] is WarningState.DEFAULT:
                    self.states[warning] = WarningState.ENABLED
            return

        if flag.startswith("error"):
            rest = flag[len("error"):]
            if rest == "":
                self.warnings_are_errors = True
                return
            if rest.startswith("="):
                self._process(rest[1:], set_error=True)
                return

        if set_error:
            state = WarningState.ERROR
        elif flag.startswith("no-"):
            state = WarningState.DISABLED
        else:
            state = WarningState.ENABLED
        root = flag[len("no-"):] if state is WarningState.DISABLED else flag

        if state is not WarningState.DISABLED:
            equals = root.find("=")
            if equals != -1 and equals + 1 < len(root):
                digits = root[equals + 1:]
                if digits.isascii() and digits.isdigit():
                    param = int(digits)
                    if param > 255:
                        warnx(f'Invalid warning flag "{flag}": capping parameter at 255')
                        param = 255
                    if set_error and param == 0:
                        warnx(f'Ignoring nonsensical warning flag "{flag}"')
                        return
                    root = root[:equals]
                    param_state = WarningState.DISABLED if param == 0 else state
                    if self._try_param_warning(root, param, param_state):
                        return

        for warning in _PLAIN_WARNINGS:
            if root == warning.flag:
                self.states[warning] = state
                return

        if self._try_param_warning(root, 0, state):
            return

        warnx(f"Unknown warning `{flag}`")

    def _try_param_warning(self, name: str, param: int, state: WarningState) -> bool:
        for family, levels, default_level, first in _PARAM_WARNINGS:
            if name != family:
                continue
            if param == 0 and state is not WarningState.DISABLED:
                param = default_level
            elif param > levels:
                if param != 255:
                    warnx(
                        f'Got parameter {param} for warning flag "{name}", '
                        f"but the maximum is {levels}; capping."
                    )
                param = levels
            for offset in range(levels):
                self.states[WarningID(first + offset)] = (
                    state if offset < param else WarningState.DISABLED
                )
            return True
        return False

    # Querying and reporting

    def state(self, warning_id: WarningID) -> WarningState:
        """Return the effective state of a warning."""
        if not self.warnings_enabled:
            return WarningState.DISABLED
        state = self.states[warning_id]
        if state is WarningState.DEFAULT:
            state = _DEFAULTS[warning_id]
        if self.warnings_are_errors and state is WarningState.ENABLED:
            state = WarningState.ERROR
        return state

    def _print(self, kind: str, flag_text: str, message: str) -> None:
        out = self.stream if self.stream is not None else sys.stderr
        where = self.location() if self.location is not None else ""
        if not message.endswith("\n"):
            message += "\n"
        out.write(f"{kind}{where}{flag_text}{message}")

    def error(self, message: str) -> None:
        """Report an error and count it."""
        self._print("error: ", ":\n    ", message)
        self.error_count += 1

    def fatal(self, message: str) -> NoReturn:
        """Report a fatal error and raise AssemblyFatalError."""
        self._print("FATAL: ", ":\n    ", message)
        raise AssemblyFatalError(message)

    def warning(self, warning_id: WarningID, message: str) -> None:
        """Report a warning according to its current state."""
        state = self.state(warning_id)
        flag = warning_id.flag
        if state is WarningState.DISABLED:
            return
        if state is WarningState.ERROR:
            self._print("error: ", f": [-Werror={flag}]\n    ", message)
            return
        self._print("warning: ", f": [-W{flag}]\n    ", message)