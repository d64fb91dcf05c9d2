"""Tests for catalog setlist parsing."""

from __future__ import annotations

import pytest

from showbook.parsers.setlist import parse_setlist, strip_html

SETLIST_HTML = (
    "<p><span class='set-label'>Set 1</span>: "
    "<a href='/song/llama'>Llama</a>, Tweezer -&gt; Fee &gt; Possum</p>"
    "<p><span class='set-label'>Set 2</span>: Carini -> Down with Disease [1], Harry Hood</p>"
    "<p><span class='set-label'>Encore</span>: Loving Cup</p>"
)


class TestParseSetlist:
    def test_sets_and_songs_in_order(self) -> None:
        setlist = parse_setlist(SETLIST_HTML)

        assert [entry.name for entry in setlist.sets] == ["Set 1", "Set 2", "Encore"]
        assert [entry.number for entry in setlist.sets] == [1, 2, 3]
        assert [song.title for song in setlist.sets[0].songs] == ["Llama", "Tweezer", "Fee", "Possum"]
        assert setlist.total_songs == 8
        assert len(setlist.all_songs) == 8

    def test_transitions_follow_each_song(self) -> None:
        songs = parse_setlist(SETLIST_HTML).sets[0].songs

        assert [song.transition for song in songs] == [", ", " -> ", " > ", None]

    def test_annotations_become_notes(self) -> None:
        songs = parse_setlist(SETLIST_HTML).sets[1].songs

        assert songs[1].title == "Down with Disease"
        assert songs[1].notes == "1"
        assert songs[1].original_text == "Down with Disease [1]"
        assert songs[2].notes is None

    def test_multiple_annotations_are_joined(self) -> None:
        song = parse_setlist("Set 1: Harry Hood [1] (Trey on keys)").sets[0].songs[0]

        assert song.title == "Harry Hood"
        assert song.notes == "1; Trey on keys"

    def test_separators_inside_annotations_do_not_split(self) -> None:
        songs = parse_setlist("Set 1: Carini (with Trey > Mike, Page), Reba").sets[0].songs

        assert [song.title for song in songs] == ["Carini", "Reba"]
        assert songs[0].notes == "with Trey > Mike, Page"

    def test_roman_numeral_sets(self) -> None:
        setlist = parse_setlist("Set I: Chalk Dust Torture, Bathtub Gin Set II: Ghost Encore: Slave to the Traffic Light")

        assert [entry.name for entry in setlist.sets] == ["Set I", "Set II", "Encore"]

    def test_second_encore(self) -> None:
        setlist = parse_setlist("Encore: Tweezer Reprise Encore 2: Loving Cup")

        assert [entry.name for entry in setlist.sets] == ["Encore", "Encore 2"]

    def test_leading_text_becomes_first_set(self) -> None:
        setlist = parse_setlist("Wilson, Sample in a Jar Set 2: Mike's Song > Weekapaug Groove")

        assert [entry.name for entry in setlist.sets] == ["Set 1", "Set 2"]
        assert [song.title for song in setlist.sets[0].songs] == ["Wilson", "Sample in a Jar"]

    def test_empty_sets_dropped_with_contiguous_numbers(self) -> None:
        setlist = parse_setlist("Set 1: Set 2: Tweezer > Reba")

        assert len(setlist.sets) == 1
        assert setlist.sets[0].name == "Set 2"
        assert setlist.sets[0].number == 1

    @pytest.mark.parametrize("text", [None, "", "   ", "<p></p>"])
    def test_blank_input(self, text) -> None:
        setlist = parse_setlist(text)

        assert setlist.sets == []
        assert setlist.total_songs == 0

    def test_render(self) -> None:
        setlist = parse_setlist("Set 1: Llama, Tweezer -> Fee Encore: Loving Cup")

        assert setlist.render() == "Set 1: Llama, Tweezer -> Fee\nEncore: Loving Cup"


def test_strip_html_removes_tags_and_entities() -> None:
    assert strip_html("<p>Tweezer &amp; <b>Reba</b></p>") == "Tweezer & Reba"
    assert strip_html("No markup") == "No markup"
