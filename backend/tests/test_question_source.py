"""
Tests for quiz generation, validation and the static fallback banks.
"""

import json
import random

import pytest

from skillpath.services.question_source import (
    DOMAINS,
    DOMAIN_BANKS,
    FUNDAMENTALS_BANK,
    PRACTICE_BANK,
    FALLBACK_QUESTION_COUNT,
    generate_quiz,
    get_fallback_quiz,
    parse_generated_quiz,
    tier_split,
    validate_question,
    build_quiz_prompt,
)
from tests.mocks.openai_mocks import (
    MOCK_QUIZ_RESPONSE,
    create_mock_question,
    mock_openai_completion,
)


class TestValidateQuestion:

    @pytest.mark.unit
    def test_valid_question_passes(self):
        question = validate_question(create_mock_question(correct_answer=3))
        assert question["correctAnswer"] == 3
        assert len(question["options"]) == 4

    @pytest.mark.unit
    @pytest.mark.parametrize("broken", [
        {"question": "", "options": ["a", "b", "c", "d"], "correctAnswer": 0},
        {"question": "Q", "options": ["a", "b", "c"], "correctAnswer": 0},
        {"question": "Q", "options": ["a", "b", "c", "d"], "correctAnswer": 4},
        {"question": "Q", "options": ["a", "b", "c", "d"], "correctAnswer": "0"},
        {"question": "Q", "options": ["a", "b", "c", "d"], "correctAnswer": True},
        {"question": "Q", "options": ["a", "b", 3, "d"], "correctAnswer": 0},
        "not a question",
    ])
    def test_malformed_question_rejected(self, broken):
        assert validate_question(broken) is None


class TestParseGeneratedQuiz:

    @pytest.mark.unit
    def test_drops_malformed_entries(self):
        data = {"questions": [create_mock_question(0), {"question": "broken"}, create_mock_question(1)]}
        assert len(parse_generated_quiz(data)) == 2

    @pytest.mark.unit
    def test_no_usable_questions_is_failure(self):
        with pytest.raises(ValueError):
            parse_generated_quiz({"questions": [{"question": "broken"}]})

    @pytest.mark.unit
    def test_missing_questions_is_failure(self):
        with pytest.raises(ValueError):
            parse_generated_quiz({"items": []})


class TestFallbackBanks:

    @pytest.mark.unit
    def test_fallback_returns_five_valid_questions(self):
        questions = get_fallback_quiz("Web Development")
        assert len(questions) == FALLBACK_QUESTION_COUNT
        assert all(validate_question(q) for q in questions)

    @pytest.mark.unit
    def test_domain_name_is_templated(self):
        questions = get_fallback_quiz("Space Technology", count=10, rng=random.Random(1))
        assert not any("{domain}" in q["question"] for q in questions)
        assert any("Space Technology" in q["question"] for q in questions)

    @pytest.mark.unit
    def test_every_domain_draws_from_at_least_two_banks(self):
        for domain in DOMAINS:
            pool_size = len(DOMAIN_BANKS.get(domain, [])) + len(FUNDAMENTALS_BANK) + len(PRACTICE_BANK)
            assert pool_size >= 2 * FALLBACK_QUESTION_COUNT

    @pytest.mark.unit
    def test_shuffle_is_seedable(self):
        a = get_fallback_quiz("DevOps", rng=random.Random(42))
        b = get_fallback_quiz("DevOps", rng=random.Random(42))
        assert a == b

    @pytest.mark.unit
    def test_selection_varies(self):
        seen = {
            tuple(q["question"] for q in get_fallback_quiz("Data Science", rng=random.Random(seed)))
            for seed in range(20)
        }
        assert len(seen) > 1

    @pytest.mark.unit
    def test_bank_entries_are_not_mutated(self):
        before = json.dumps(FUNDAMENTALS_BANK)
        get_fallback_quiz("Hardware")
        assert json.dumps(FUNDAMENTALS_BANK) == before


class TestGenerateQuiz:

    @pytest.mark.unit
    def test_tier_split_for_ten(self):
        assert tier_split(10) == {"beginner": 3, "intermediate": 4, "advanced": 3}

    @pytest.mark.unit
    def test_prompt_carries_nonce(self):
        assert "abc123" in build_quiz_prompt("DevOps", 10, "abc123")

    @pytest.mark.unit
    def test_generated_quiz(self, mock_openai):
        mock_openai.chat.completions.create.return_value = mock_openai_completion(MOCK_QUIZ_RESPONSE)

        quiz = generate_quiz("Data Science")

        assert quiz.source == "generated"
        assert quiz.domain == "Data Science"
        assert len(quiz.questions) == 10
        kwargs = mock_openai.chat.completions.create.call_args.kwargs
        assert kwargs["temperature"] == 0.9
        assert kwargs["response_format"] == {"type": "json_object"}
        assert "timeout" in kwargs

    @pytest.mark.unit
    def test_each_request_uses_a_fresh_nonce(self, mock_openai):
        mock_openai.chat.completions.create.return_value = mock_openai_completion(MOCK_QUIZ_RESPONSE)

        generate_quiz("Data Science")
        generate_quiz("Data Science")

        prompts = [c.kwargs["messages"][1]["content"] for c in mock_openai.chat.completions.create.call_args_list]
        assert prompts[0] != prompts[1]

    @pytest.mark.unit
    def test_invalid_json_falls_back(self, mock_openai):
        mock_openai.chat.completions.create.return_value = mock_openai_completion("not json at all")

        quiz = generate_quiz("Cybersecurity")

        assert quiz.source == "fallback"
        assert len(quiz.questions) == FALLBACK_QUESTION_COUNT

    @pytest.mark.unit
    def test_api_error_falls_back(self, mock_openai):
        mock_openai.chat.completions.create.side_effect = RuntimeError("boom")

        quiz = generate_quiz("Cybersecurity")

        assert quiz.source == "fallback"

    @pytest.mark.unit
    def test_timeout_is_not_retried(self, mock_openai):
        mock_openai.chat.completions.create.side_effect = TimeoutError("Request timed out")

        quiz = generate_quiz("Cybersecurity")

        assert quiz.source == "fallback"
        assert mock_openai.chat.completions.create.call_count == 1

    @pytest.mark.unit
    def test_missing_api_key_falls_back(self):
        quiz = generate_quiz("Web Development")
        assert quiz.source == "fallback"
