import io

import pytest

from gbromkit.diagnostics import (
    AssemblyFatalError,
    Diagnostics,
    WarningID,
    WarningState,
)
from gbromkit.errors import FatalError


@pytest.fixture
def diag():
    return Diagnostics(io.StringIO(), True)


def test_default_states(diag):
    assert diag.state(WarningID.ASSERT) is WarningState.ENABLED
    assert diag.state(WarningID.DIV) is WarningState.DISABLED
    assert diag.state(WarningID.TRUNCATION_1) is WarningState.ENABLED
    assert diag.state(WarningID.TRUNCATION_2) is WarningState.DISABLED


def test_enable_plain_flag(diag):
    diag.process_warning_flag("div")
    assert diag.state(WarningID.DIV) is WarningState.ENABLED


def test_disable_with_no_prefix(diag):
    diag.process_warning_flag("no-obsolete")
    assert diag.state(WarningID.OBSOLETE) is WarningState.DISABLED


def test_werror_turns_enabled_into_errors(diag):
    diag.process_warning_flag("error")
    assert diag.state(WarningID.ASSERT) is WarningState.ERROR
    assert diag.state(WarningID.DIV) is WarningState.DISABLED


def test_werror_for_single_flag(diag):
    diag.process_warning_flag("error=div")
    assert diag.state(WarningID.DIV) is WarningState.ERROR
    assert diag.state(WarningID.ASSERT) is WarningState.ENABLED


def test_meta_does_not_override_explicit(diag):
    diag.process_warning_flag("no-backwards-for")
    diag.process_warning_flag("all")
    assert diag.state(WarningID.BACKWARDS_FOR) is WarningState.DISABLED
    assert diag.state(WarningID.BUILTIN_ARG) is WarningState.ENABLED
    assert diag.state(WarningID.DIV) is WarningState.DISABLED


def test_everything_enables_div(diag):
    diag.process_warning_flag("everything")
    assert diag.state(WarningID.DIV) is WarningState.ENABLED
    assert diag.state(WarningID.TRUNCATION_2) is WarningState.ENABLED


def test_meta_cannot_be_error(diag):
    with pytest.raises(FatalError):
        diag.process_warning_flag("error=all")


def test_parametric_level_one(diag):
    diag.process_warning_flag("truncation=1")
    assert diag.state(WarningID.TRUNCATION_1) is WarningState.ENABLED
    assert diag.state(WarningID.TRUNCATION_2) is WarningState.DISABLED


def test_parametric_without_param_uses_default(diag):
    diag.process_warning_flag("truncation")
    assert diag.state(WarningID.TRUNCATION_1) is WarningState.ENABLED
    assert diag.state(WarningID.TRUNCATION_2) is WarningState.ENABLED


def test_parametric_zero_disables(diag):
    diag.process_warning_flag("truncation=0")
    assert diag.state(WarningID.TRUNCATION_1) is WarningState.DISABLED
    assert diag.state(WarningID.TRUNCATION_2) is WarningState.DISABLED


def test_parametric_negation_disables_all(diag):
    diag.process_warning_flag("no-numeric-string")
    assert diag.state(WarningID.NUMERIC_STRING_1) is WarningState.DISABLED
    assert diag.state(WarningID.NUMERIC_STRING_2) is WarningState.DISABLED


def test_parametric_too_large_is_capped(diag, capsys):
    diag.process_warning_flag("numeric-string=5")
    assert diag.state(WarningID.NUMERIC_STRING_2) is WarningState.ENABLED
    assert "capping" in capsys.readouterr().err


def test_error_with_zero_param_is_ignored(diag, capsys):
    diag.process_warning_flag("error=truncation=0")
    assert diag.state(WarningID.TRUNCATION_1) is WarningState.ENABLED
    assert "Ignoring nonsensical warning flag" in capsys.readouterr().err


def test_error_parametric(diag):
    diag.process_warning_flag("error=truncation")
    assert diag.state(WarningID.TRUNCATION_1) is WarningState.ERROR
    assert diag.state(WarningID.TRUNCATION_2) is WarningState.ERROR


def test_param_on_plain_flag_is_dropped(diag):
    diag.process_warning_flag("shift=3")
    assert diag.state(WarningID.SHIFT) is WarningState.ENABLED


def test_unknown_flag_warns(diag, capsys):
    diag.process_warning_flag("bogus")
    assert "Unknown warning `bogus`" in capsys.readouterr().err


def test_globally_disabled():
    diag = Diagnostics(io.StringIO(), False)
    assert diag.state(WarningID.ASSERT) is WarningState.DISABLED


def test_warning_output(diag):
    diag.warning(WarningID.ASSERT, "hello")
    assert diag.stream.getvalue() == "warning: : [-Wassert]\n    hello\n"


def test_disabled_warning_prints_nothing(diag):
    diag.warning(WarningID.DIV, "quiet")
    assert diag.stream.getvalue() == ""


def test_warning_as_error_output(diag):
    diag.process_warning_flag("error=div")
    diag.warning(WarningID.DIV, "division")
    output = diag.stream.getvalue()
    assert output.startswith("error: ")
    assert "[-Werror=div]" in output
    assert output.endswith("division\n")


def test_location_is_printed(diag):
    diag.location = lambda: "main.asm(3)"
    diag.error("oops")
    assert diag.stream.getvalue() == "error: main.asm(3):\n    oops\n"


def test_error_counts(diag):
    diag.error("one")
    diag.error("two")
    assert diag.error_count == 2


def test_fatal_raises(diag):
    with pytest.raises(AssemblyFatalError) as info:
        diag.fatal("boom")
    assert info.value.code == 1
    assert diag.stream.getvalue().startswith("FATAL: ")


def test_long_string_flag_name_in_output(diag):
    diag.process_warning_flag("long-string")
    diag.warning(WarningID.LONG_STR, "too long")
    assert diag.stream.getvalue() == "warning: : [-Wlong-string]\n    too long\n"


def test_parametric_flag_name_in_output(diag):
    diag.process_warning_flag("numeric-string=2")
    diag.warning(WarningID.NUMERIC_STRING_2, "numeric")
    assert diag.stream.getvalue() == "warning: : [-Wnumeric-string]\n    numeric\n"