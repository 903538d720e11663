"""Unit tests for positional batch translation."""

from __future__ import annotations

import pytest

from sheet_gateway.errors import RateLimited, TranslationFailed
from sheet_gateway.llm_client import LLMClient
from sheet_gateway.translation import (
    BatchTranslator,
    build_user_prompt,
    normalize_language,
    number_items,
    parse_numbered_lines,
)
from tests.fakes import ChatFactoryStub, ScriptedChat, rate_limit_error, server_error


def translator_with(settings, reply: str = "", error: Exception = None):
    chat = ScriptedChat(reply=reply, error=error)
    factory = ChatFactoryStub(chat)
    return BatchTranslator(LLMClient(settings, factory=factory)), chat, factory


class TestNormalizeLanguage:
    @pytest.mark.parametrize("name, expected", [
        ("일본어", "Japanese"),
        ("ja", "Japanese"),
        ("English", "English"),
        ("영어", "English"),
        ("중국어 번체", "Chinese (Traditional)"),
        (" 한국어 ", "Korean"),
    ])
    def test_aliases(self, name, expected):
        assert normalize_language(name) == expected

    def test_unknown_passes_through(self):
        assert normalize_language("Klingon") == "Klingon"


class TestPrompt:
    def test_items_numbered_from_one(self):
        assert number_items(["a", "b"]) == "[1] a\n[2] b"

    def test_cell_line_breaks_flattened(self):
        assert number_items(["line one\nline two\r\nthree\rfour"]) == "[1] line one line two three four"

    def test_other_whitespace_kept(self):
        assert number_items(["a  b\tc "]) == "[1] a  b\tc "

    def test_empty_items_keep_their_slot(self):
        assert number_items(["a", None, ""]) == "[1] a\n[2] \n[3] "

    def test_direction(self):
        assert "from Korean to Japanese" in build_user_prompt(["x"], "Japanese", "Korean")
        assert "items to Japanese" in build_user_prompt(["x"], "Japanese")


class TestParseNumberedLines:
    def test_in_order(self):
        assert parse_numbered_lines("[1] a\n[2] b\n[3] c", 3) == ["a", "b", "c"]

    def test_out_of_order(self):
        assert parse_numbered_lines("[3] c\n[1] a\n[2] b", 3) == ["a", "b", "c"]

    def test_omitted_number_blanks_only_that_slot(self):
        assert parse_numbered_lines("[1] a\n[3] c", 3) == ["a", "", "c"]

    def test_empty_marker(self):
        assert parse_numbered_lines("[1] a\n[2] [EMPTY]", 2) == ["a", ""]

    def test_duplicate_last_wins(self):
        assert parse_numbered_lines("[1] first\n[1] second\n[2] b", 2) == ["second", "b"]

    def test_duplicate_empty_marker_overwrites(self):
        assert parse_numbered_lines("[1] first\n[1] [EMPTY]", 1) == [""]

    def test_out_of_range_ignored(self):
        assert parse_numbered_lines("[0] zero\n[1] a\n[4] extra", 2) == ["a", ""]

    def test_junk_lines_ignored(self):
        text = "Here are your translations:\n\n[1] a\nnote: done\n[2] b"
        assert parse_numbered_lines(text, 2) == ["a", "b"]

    def test_nothing_parsed(self):
        assert parse_numbered_lines("", 3) == ["", "", ""]


class TestBatchTranslator:
    async def test_omitted_item_stays_aligned(self, settings):
        translator, chat, factory = translator_with(settings, "[1] こんにちは\n[3] ありがとう")

        result = await translator.translate_batch(["안녕", "", "고마워"], "일본어", model="m")

        assert result.operation == "translate_batch_result"
        assert result.translations == ["こんにちは", "", "ありがとう"]
        assert "to Japanese" in chat.user_prompt
        assert "[2] \n" in chat.user_prompt
        assert factory.requests == [("m", 2000)]

    async def test_source_language_in_prompt(self, settings):
        translator, chat, _ = translator_with(settings, "[1] Hi")

        await translator.translate_batch(["안녕"], "en", source_language="ko", model="m")

        assert "from Korean to English" in chat.user_prompt

    async def test_empty_input_skips_model(self, settings):
        translator, chat, factory = translator_with(settings)

        result = await translator.translate_batch([], "English", model="m")

        assert result.translations == []
        assert chat.calls == []
        assert factory.requests == []

    async def test_upstream_failure(self, settings):
        translator, _, _ = translator_with(settings, error=server_error("boom"))

        with pytest.raises(TranslationFailed) as excinfo:
            await translator.translate_batch(["a"], "English", model="m")

        assert excinfo.value.to_dict()["success"] is False

    async def test_rate_limit_not_masked(self, settings):
        translator, _, _ = translator_with(settings, error=rate_limit_error())

        with pytest.raises(RateLimited):
            await translator.translate_batch(["a"], "English", model="m")
