import pytest

from gbromkit.errors import FatalError, err, errx, warn, warnx


def test_warnx_writes_prefixed_line(capsys):
    warnx("something odd")
    assert capsys.readouterr().err == "warning: something odd\n"


def test_errx_reports_and_raises(capsys):
    with pytest.raises(FatalError) as info:
        errx("bad thing")
    assert info.value.code == 1
    assert info.value.message == "bad thing"
    assert capsys.readouterr().err == "error: bad thing\n"


def test_fatal_error_is_system_exit():
    with pytest.raises(SystemExit) as info:
        errx("stop")
    assert info.value.code == 1
    assert str(info.value) == "stop"


def test_err_includes_current_os_error(tmp_path, capsys):
    missing = tmp_path / "missing.bin"
    try:
        open(missing, "rb")
    except OSError as exc:
        reason = exc.strerror
        with pytest.raises(FatalError):
            err("cannot open")
    assert capsys.readouterr().err == f"error: cannot open: {reason}\n"


def test_warn_includes_current_os_error(tmp_path, capsys):
    missing = tmp_path / "missing.bin"
    try:
        open(missing, "rb")
    except OSError as exc:
        reason = exc.strerror
        warn("cannot open")
    assert capsys.readouterr().err == f"warning: cannot open: {reason}\n"


def test_warn_with_generic_exception(capsys):
    try:
        raise ValueError("broken value")
    except ValueError:
        warn("parsing")
    assert capsys.readouterr().err == "warning: parsing: broken value\n"