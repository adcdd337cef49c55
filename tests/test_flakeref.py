import pytest

from nocflake.flakeref import (
    FlakeRefError,
    git_url_to_flake_ref as f,
    ident_or_str,
    nix_escape,
)


@pytest.mark.parametrize(
    ("url", "ref_name", "rev", "expected"),
    [
        ("https://example.com", "dev", "123", "git+https://example.com?rev=123"),
        ("https://example.com", None, "123", "git+https://example.com?rev=123"),
        ("https://example.com", "dev", None, "git+https://example.com?ref=dev"),
        ("https://example.com", None, None, "git+https://example.com"),
        ("http://example.com", None, None, "git+http://example.com"),
        ("git+https://example.com", None, None, "git+https://example.com"),
        ("git://example.com", None, None, "git://example.com"),
        ("git+git://example.com", None, None, "git://example.com"),
        ("git+ssh://[email]/foo/bar", None, None, "git+ssh://[email]/foo/bar"),
    ],
)
def test_flake_url_schemas(url, ref_name, rev, expected):
    assert f(url, ref_name, rev) == expected


def test_unsupported_scheme():
    with pytest.raises(FlakeRefError):
        f("ws://example.com", None, None)


@pytest.mark.parametrize(
    ("url", "ref_name", "rev", "expected"),
    [
        ("https://github.com/foo/bar", "dev", "123", "github:foo/bar/123"),
        ("https://github.com/foo/bar", None, "123", "github:foo/bar/123"),
        ("https://github.com/foo/bar", "dev", None, "github:foo/bar/dev"),
        ("https://github.com/foo/bar", None, None, "github:foo/bar"),
        ("https://github.com/foo/bar.git", None, None, "github:foo/bar"),
        ("https://github.com/foo/bar/", None, None, "github:foo/bar"),
        ("http://github.com/foo/bar.git", None, None, "github:foo/bar"),
        ("git+https://github.com/foo/bar.git", None, None, "github:foo/bar"),
    ],
)
def test_flake_url_github(url, ref_name, rev, expected):
    assert f(url, ref_name, rev) == expected


def test_defaults_for_ref_and_rev():
    assert f("https://example.com") == "git+https://example.com"


@pytest.mark.parametrize("url", ["https://example.com?x=1", "https://example.com#frag"])
def test_query_or_fragment_rejected(url):
    with pytest.raises(FlakeRefError, match="not supported yet"):
        f(url, None, None)


def test_error_is_value_error():
    with pytest.raises(ValueError):
        f("ftp://example.com")


def test_nix_escape():
    assert nix_escape('a"b\\c') == 'a\\"b\\\\c'
    assert nix_escape("plain") == "plain"


@pytest.mark.parametrize("name", ["foo", "_bar", "foo-bar", "x'", "a1_b-2"])
def test_ident_or_str_identifiers(name):
    assert ident_or_str(name) == name


@pytest.mark.parametrize("keyword", ["if", "then", "else", "let", "in", "rec", "or"])
def test_ident_or_str_keywords_unchanged_text(keyword):
    # Keywords go through escaping, which leaves plain text as is.
    assert ident_or_str(keyword) == nix_escape(keyword)


def test_ident_or_str_non_identifier_is_escaped():
    assert ident_or_str('1"a') == '1\\"a'
    assert ident_or_str("") == ""
    assert ident_or_str("a.b\\") == "a.b\\\\"