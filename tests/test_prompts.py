"""Tests for prompt construction."""

from sitewatch.prompts import build_analysis_prompt, build_vision_prompt


def test_analysis_prompt_quotes_criteria():
    prompt = build_analysis_prompt("  the price is below $50 ")
    assert 'determine if the following is true: "the price is below $50".' in prompt


def test_vision_prompt_asks_for_json():
    prompt = build_vision_prompt("size 42 is available")
    assert prompt.startswith(build_analysis_prompt("size 42 is available"))
    assert '"criteriaMatched": true/false' in prompt
