"""
Tests for hidden-keyword detection in job descriptions.
"""

from job_board.smart_tips import detect_smart_tips, is_likely_code, strip_html


class TestDetectSmartTips:
    """Planted application keywords."""

    def test_empty_description(self):
        assert detect_smart_tips("") == {"found": False, "tips": [], "hasBotFilterContext": False}

    def test_keyword_with_bot_filter_context(self):
        result = detect_smart_tips(
            "Please mention the word PURPLE in your application to show you're human."
        )
        assert result["found"] is True
        assert result["hasBotFilterContext"] is True
        assert len(result["tips"]) == 1
        tip = result["tips"][0]
        assert tip["type"] == "hidden_keyword"
        assert tip["keyword"] == "PURPLE"
        assert "PURPLE" in tip["instruction"]
        assert "PURPLE" in tip["context"]

    def test_code_like_keyword_without_context(self):
        result = detect_smart_tips("Mention BANANA42 when you apply.")
        assert result["hasBotFilterContext"] is False
        assert [t["type"] for t in result["tips"]] == ["possible_keyword"]
        assert result["tips"][0]["keyword"] == "BANANA42"

    def test_ordinary_word_without_context_is_ignored(self):
        result = detect_smart_tips("Mention teamwork in your cover letter.")
        assert result["found"] is False
        assert result["tips"] == []

    def test_common_words_are_never_keywords(self):
        result = detect_smart_tips("Please mention your availability. Read the job carefully.")
        assert all(t["keyword"] != "your" for t in result["tips"])

    def test_html_is_stripped_before_matching(self):
        result = detect_smart_tips(
            "<p>To avoid spam, please <strong>mention</strong> the word ZEBRA</p>"
        )
        assert result["hasBotFilterContext"] is True
        assert [t["keyword"] for t in result["tips"]] == ["ZEBRA"]


class TestHelpers:

    def test_strip_html_decodes_entities(self):
        assert strip_html("<b>R&amp;D</b>&nbsp;team") == "R&D team"

    def test_is_likely_code(self):
        assert is_likely_code("BANANA42")
        assert is_likely_code("PURPLE")
        assert not is_likely_code("teamwork")
