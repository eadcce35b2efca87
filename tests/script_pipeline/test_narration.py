"""Tests for narration synthesis and character-limit distribution."""

import asyncio
import pytest

from conftest import FakeGenerator
from exceptions import ValidationError
from script_pipeline.models import ChapterMeta, Segment
from script_pipeline.narration import (
    NarrationSynthesizer,
    distribute_narration,
    fallback_narrations,
    normalize_narration,
    repair_total_length,
)

SEGMENT_TEXT = "他推开沉重的木门，走进了昏暗的大厅，看见灯下坐着一个陌生的老人，正低头擦拭一把旧剑。"


def _segments(count, text=SEGMENT_TEXT):
    return [Segment(index=i, text=text) for i in range(count)]


def _meta():
    return ChapterMeta(novel_title="Test Novel", chapter_number=3, chapter_title="Lamp")


def _assert_band(units, count):
    assert len(units) == count
    assert [u.segment_index for u in units] == list(range(count))
    for unit in units:
        assert 20 <= len(unit.text) <= 22


@pytest.mark.unit
class TestNormalizeNarration:

    def test_strips_terminals_annotations_and_breaks(self):
        raw = "  他来了。(21字)\n她走了…（20 chars）\r\n"
        assert normalize_narration(raw) == "他来了她走了"

    def test_keeps_commas(self):
        assert normalize_narration("他来了，她走了.") == "他来了，她走了"


@pytest.mark.unit
class TestRepairTotalLength:

    def test_truncates_to_upper_bound(self):
        """300 characters for 10 segments truncates to 220."""
        text = repair_total_length("字" * 300, _segments(10))
        assert len(text) == 220

    def test_tops_up_to_lower_bound(self):
        text = repair_total_length("短", _segments(3))

        assert len(text) == 60
        assert text.startswith("短" + SEGMENT_TEXT[:10])

    def test_within_bounds_untouched(self):
        assert repair_total_length("字" * 65, _segments(3)) == "字" * 65


@pytest.mark.unit
class TestDistributeNarration:

    def test_even_split(self):
        units = distribute_narration("字" * 220, _segments(10))

        _assert_band(units, 10)
        assert "".join(u.text for u in units) == "字" * 220

    def test_prefers_cut_after_punctuation(self):
        text = "甲" * 19 + "，" + "乙" * 22
        units = distribute_narration(text, _segments(2))

        assert units[0].text == "甲" * 19 + "，"
        assert units[1].text == "乙" * 22

    def test_overlong_last_unit_is_trimmed(self):
        text = "甲" * 20 + "，" + "乙" * 23
        units = distribute_narration(text, _segments(2))

        _assert_band(units, 2)
        assert units[0].text == "甲" * 20 + "，"
        assert units[1].text == "乙" * 22

    def test_invariants_hold_for_punctuated_text(self):
        clause = "他点亮了油灯，看向窗外的雨夜！心里有些发慌；"
        for count in range(1, 12):
            segments = _segments(count)
            text = repair_total_length(normalize_narration(clause * count), segments)
            _assert_band(distribute_narration(text, segments), count)


@pytest.mark.unit
class TestFallbackNarrations:

    def test_first_21_characters(self):
        units = fallback_narrations(_segments(4))

        _assert_band(units, 4)
        assert all(u.text == SEGMENT_TEXT[:21] for u in units)

    def test_short_segment_is_padded(self):
        segments = [Segment(index=0, text="短句。"), Segment(index=1, text=SEGMENT_TEXT)]
        units = fallback_narrations(segments)

        _assert_band(units, 2)
        assert units[0].text.startswith("短句。短句。")

    def test_empty_segment_borrows_from_chapter(self):
        segments = [Segment(index=0, text=SEGMENT_TEXT), Segment(index=1, text="")]
        units = fallback_narrations(segments)

        assert units[1].text == SEGMENT_TEXT[:21]

    def test_all_empty_raises(self):
        with pytest.raises(ValidationError):
            fallback_narrations([Segment(index=0, text="")])


class _SlowGenerator:
    async def stream(self, prompt):
        await asyncio.sleep(1)
        yield "too late"


@pytest.mark.unit
class TestNarrationSynthesizer:

    @pytest.mark.asyncio
    async def test_overlong_response_repaired(self):
        generator = FakeGenerator(["字" * 300])

        units = await NarrationSynthesizer(generator).synthesize(_segments(10), _meta())

        _assert_band(units, 10)
        assert sum(len(u.text) for u in units) == 220
        assert "between 200 and 220 characters" in generator.prompts[0]

    @pytest.mark.asyncio
    async def test_failure_uses_fallback(self):
        generator = FakeGenerator([ConnectionError("boom")])

        units = await NarrationSynthesizer(generator).synthesize(_segments(3), _meta())

        assert units == fallback_narrations(_segments(3))

    @pytest.mark.asyncio
    async def test_empty_response_uses_fallback(self):
        units = await NarrationSynthesizer(FakeGenerator(["   "])).synthesize(_segments(2), _meta())
        assert units == fallback_narrations(_segments(2))

    @pytest.mark.asyncio
    async def test_rejects_zero_segments(self):
        with pytest.raises(ValidationError):
            await NarrationSynthesizer(FakeGenerator(default="x")).synthesize([])

    @pytest.mark.asyncio
    async def test_single_unit_cleaned(self):
        generator = FakeGenerator(["【解说】他推开门走进了昏暗的大厅，看见灯下坐着一个人\n"])
        segment = Segment(index=4, text=SEGMENT_TEXT)

        unit = await NarrationSynthesizer(generator).synthesize_single(segment, _meta())

        assert unit.text == "他推开门走进了昏暗的大厅，看见灯下坐着一个人"
        assert unit.segment_index == 4

    @pytest.mark.asyncio
    async def test_single_unit_truncated(self):
        generator = FakeGenerator(["字" * 30])
        unit = await NarrationSynthesizer(generator).synthesize_single(Segment(index=0, text=SEGMENT_TEXT))
        assert unit.text == "字" * 22

    @pytest.mark.asyncio
    async def test_single_unit_too_short_uses_segment(self):
        generator = FakeGenerator(["太短了"])
        unit = await NarrationSynthesizer(generator).synthesize_single(Segment(index=0, text=SEGMENT_TEXT))
        assert unit.text == SEGMENT_TEXT[:22]

    @pytest.mark.asyncio
    async def test_single_unit_timeout_uses_segment(self):
        synthesizer = NarrationSynthesizer(_SlowGenerator(), single_timeout=0.01)
        unit = await synthesizer.synthesize_single(Segment(index=0, text=SEGMENT_TEXT))
        assert unit.text == SEGMENT_TEXT[:22]
