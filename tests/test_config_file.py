"""Tests for the banner TOML read-modify-write helpers."""

import pytest

from danta_auto_tool.banners.config_file import BannerConfigDocument
from danta_auto_tool.banners.models import Banner, BannerValidationError

CONFIG_WITH_BANNERS = """\
# Danta app configuration
user_agent = "DanXi"

[[banners]]
title = "Old" # keep me
action = "https://danxi.dev/old"
button = "Open"
"""


def _titles(text):
    return [banner.title for banner in BannerConfigDocument.parse(text).banners]


def test_append_keeps_comments_and_existing_entries():
    document = BannerConfigDocument.parse(CONFIG_WITH_BANNERS)

    document.append_banner(Banner(title="New", action="https://danxi.dev/new", button="Go"))
    output = document.dumps()

    assert output.startswith("# Danta app configuration\n")
    assert "# keep me" in output
    assert _titles(output) == ["Old", "New"]
    assert output.count("[[banners]]") == 2


def test_append_creates_banners_when_missing():
    document = BannerConfigDocument.parse('user_agent = "DanXi"\n')

    document.append_banner(Banner(title="First"))
    output = document.dumps()

    assert "[[banners]]" in output
    assert _titles(output) == ["First"]


def test_append_replaces_empty_inline_array():
    document = BannerConfigDocument.parse('user_agent = "DanXi"\nbanners = []\n')

    document.append_banner(Banner(title="First", action="a", button="b"))
    output = document.dumps()

    assert "banners = []" not in output
    assert _titles(output) == ["First"]


def test_append_extends_inline_array():
    text = 'banners = [{ title = "Old", action = "", button = "" }]\n'
    document = BannerConfigDocument.parse(text)

    document.append_banner(Banner(title="New"))

    assert _titles(document.dumps()) == ["Old", "New"]


def test_banners_skip_invalid_entries():
    text = '[[banners]]\ntitle = ""\n\n[[banners]]\ntitle = "Valid"\nextra = 1\n'

    assert _titles(text) == ["Valid"]


@pytest.mark.parametrize(
    "text",
    [
        "banners = [",
        'banners = "nope"\n',
        "banners = [1, 2]\n",
        "[banners]\ntitle = \"table, not array\"\n",
    ],
)
def test_parse_rejects_unusable_documents(text):
    with pytest.raises(BannerValidationError):
        BannerConfigDocument.parse(text)


def test_append_keeps_blank_line_before_following_table():
    text = (
        '[[banners]]\ntitle = "Old"\naction = ""\nbutton = ""\n\n'
        "[semester_start_date]\nstart = 2024-02-26\n"
    )
    document = BannerConfigDocument.parse(text)

    document.append_banner(Banner(title="New", action="a", button="b"))
    output = document.dumps()

    assert 'button = "b"\n\n' in output
    assert "[semester_start_date]" in output.split('button = "b"', 1)[1]
    assert _titles(output) == ["Old", "New"]


def test_contains_matches_all_banner_fields():
    document = BannerConfigDocument.parse(CONFIG_WITH_BANNERS)

    assert document.contains(Banner(title="Old", action="https://danxi.dev/old", button="Open"))
    assert not document.contains(Banner(title="Old", action="https://danxi.dev/other", button="Open"))
