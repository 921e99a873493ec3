import pytest

from helpers import (
    convert_titles,
    designer_initials,
    normalize_game_name,
    split_title_lines,
    to_copy_name,
    to_plugin_name,
)


@pytest.mark.parametrize(
    'value',
    [' A  b ', 'Sweet   Bonanza', '\tGates\nof Olympus  ', '', 'ALREADY lower', 'Ünïcode  Näme'],
)
def test_normalize_game_name_is_idempotent(value):
    once = normalize_game_name(value)
    assert normalize_game_name(once) == once


def test_normalize_game_name_collapses_case_and_whitespace():
    assert normalize_game_name(' A  b ') == normalize_game_name('a b')
    assert normalize_game_name('Sweet   Bonanza') == 'sweet bonanza'
    assert normalize_game_name(None) == ''


def test_plugin_name_keeps_only_lowercase_alphanumerics():
    assert to_plugin_name('Apollo Petite Roulette') == 'apollopetiteroulette'
    assert to_plugin_name("Gonzo's Quest: Megaways™") == 'gonzosquestmegaways'
    assert to_plugin_name(to_plugin_name('Book of Dead 2')) == 'bookofdead2'


def test_copy_name_only_drops_whitespace():
    assert to_copy_name("Gonzo's  Quest") == "gonzo'squest"


def test_split_title_lines_trims_and_drops_blanks():
    text = '  Gates of Olympus \n\n   \nSweet Bonanza\r\n'
    assert split_title_lines(text) == ['Gates of Olympus', 'Sweet Bonanza']
    assert split_title_lines(['One\nTwo', ' Three ']) == ['One', 'Two', 'Three']
    assert split_title_lines(None) == []


def test_convert_titles_converts_line_by_line():
    text = 'Apollo Petite Roulette\n\n  Big Bass Bonanza  \n!!!\n'
    assert convert_titles(text) == ['apollopetiteroulette', 'bigbassbonanza']


def test_designer_initials():
    assert designer_initials('Jane  Doe') == 'JD'
    assert designer_initials('') == ''
