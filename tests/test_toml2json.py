import io
import json
import sys

import pytest

from nocflake.toml2json import DATETIME_KEY, convert, main


def test_round_trip_basic_values():
    text = 'name = "nocargo"\ncount = 3\nratio = 0.5\nok = true\n'
    assert json.loads(convert(text)) == {
        "name": "nocargo",
        "count": 3,
        "ratio": 0.5,
        "ok": True,
    }


def test_nested_tables_and_arrays():
    text = '[package]\nname = "foo"\n[dependencies]\nbar = { path = "../bar" }\nlist = [1, 2]\n'
    result = json.loads(convert(text))
    assert result["package"] == {"name": "foo"}
    assert result["dependencies"]["bar"] == {"path": "../bar"}
    assert result["dependencies"]["list"] == [1, 2]


def test_bytes_and_str_agree():
    text = 'a = "x"\n[b]\nc = [1, "two"]\n'
    assert convert(text.encode("utf-8")) == convert(text)


def test_output_is_compact():
    out = convert('a = 1\nb = [1, 2]\n')
    assert " " not in out
    assert "\n" not in out


def test_keys_are_sorted():
    out = convert("zeta = 1\nalpha = 2\nmid = 3\n")
    assert list(json.loads(out)) == sorted(["zeta", "alpha", "mid"])
    assert out.index("alpha") < out.index("mid") < out.index("zeta")


def test_non_ascii_kept():
    out = convert('s = "🅱️"\n')
    assert "🅱️" in out


def test_datetime_uses_private_key():
    result = json.loads(convert("d = 1979-05-27\n"))
    assert result["d"] == {DATETIME_KEY: "1979-05-27"}
    assert DATETIME_KEY == "$__toml_private_datetime"


def test_offset_datetime_with_z():
    result = json.loads(convert("t = 1979-05-27T07:32:00Z\n"))
    assert result["t"] == {DATETIME_KEY: "1979-05-27T07:32:00Z"}


def test_non_finite_float_becomes_null():
    assert json.loads(convert("x = nan\ny = inf\n")) == {"x": None, "y": None}


def test_invalid_toml_raises():
    with pytest.raises(ValueError):
        convert("a = \n")


def test_main_writes_json_line(monkeypatch, capsysbinary):
    text = b'[package]\nname = "baz"\nversion = "0.1.0"\n'
    monkeypatch.setattr(sys, "stdin", io.TextIOWrapper(io.BytesIO(text)))
    assert main([]) == 0
    out = capsysbinary.readouterr().out
    assert out.endswith(b"\n")
    assert json.loads(out) == {"package": {"name": "baz", "version": "0.1.0"}}


def test_main_reports_error(monkeypatch, capsysbinary):
    monkeypatch.setattr(sys, "stdin", io.TextIOWrapper(io.BytesIO(b"= broken")))
    assert main() == 1
    captured = capsysbinary.readouterr()
    assert captured.out == b""
    assert captured.err.startswith(b"Error:")