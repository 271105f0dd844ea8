from datetime import datetime

from banana.helpers import (
    date,
    default_helpers,
    lower,
    static,
    strip_html,
    truncate_words,
    upper,
)


def test_truncate_words():
    assert truncate_words(3, "one two three four") == "one two three"
    assert truncate_words(5, "only two") == "only two"
    assert truncate_words(2, "  spaced\n\tout   words ") == "spaced out"
    assert truncate_words(0, "anything") == ""


def test_strip_html():
    assert strip_html("<p>Hello <em>world</em></p>") == "Hello world"
    assert strip_html("no tags") == "no tags"


def test_static():
    assert static("css/site.css") == "/static/css/site.css"


def test_date():
    ts = datetime(2021, 6, 1, 9, 5)
    assert date("%Y-%m-%d", ts) == "2021-06-01"
    assert date("%H:%M", ts) == "09:05"
    assert date("%Y", None) == ""


def test_case_helpers():
    assert lower("MiXeD") == "mixed"
    assert upper("MiXeD") == "MIXED"


def test_default_helpers_names():
    helpers = default_helpers()
    assert set(helpers) == {
        "date",
        "lower",
        "upper",
        "static",
        "stripHtml",
        "truncateWords",
        "pygmentsCss",
    }
    assert ".highlight" in helpers["pygmentsCss"]()
