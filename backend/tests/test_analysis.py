# backend/tests/test_analysis.py
"""
Analysis helpers that run without the LLM:
1. Score model and heuristic grading
2. LLM JSON parsing
3. Upload critique validation and fallback
4. Objection detection and coaching lookups
5. Rule-based practice moments
"""

import pytest

from pitchcoach.analysis.moments import calculate_difficulty, difficulty_label, extract_moments
from pitchcoach.analysis.objections import (
    PERSONALITY_COACHING,
    detect_objections,
    get_moment_coaching,
    get_objection_coaching,
    get_personality_guidance,
)
from pitchcoach.analysis.scoring import (
    AnalysisParseError,
    CallScores,
    has_basic_participation,
    heuristic_scores,
    no_participation_scores,
    parse_llm_json,
)
from pitchcoach.analysis.upload_review import (
    analysis_columns,
    fallback_upload_analysis,
    validate_upload_analysis,
)


def _valid_critique():
    return {
        "confidence_score": 72,
        "objection_handling_scores": {"price": 60, "timing": 70, "trust": 80, "competitor": 55},
        "strengths": ["Friendly opener"],
        "weaknesses": ["Never asked for the meeting"],
        "better_responses": {
            "price_objection": "What would it be worth to you to fill those empty slots?",
            "timing_concern": "What would need to change for this to be a priority?",
        },
        "psychological_insights": "You backed off at the first sign of resistance.",
    }


# ============================================================================
# 1. SCORING
# ============================================================================

class TestScoring:

    def test_participation_gate(self):
        assert not has_basic_participation("hi")
        assert not has_basic_participation("")
        assert has_basic_participation("Good morning, I'm reaching out about your business today")

    def test_no_participation_scores_are_zero(self):
        scores = no_participation_scores()
        assert scores.overall_score == 0
        assert scores.confidence_score == 0
        assert scores.successful_sale is False
        assert "No sales conversation detected" in scores.feedback

    def test_heuristics_reward_structure(self):
        transcript = (
            "User: Hi, my name is Sam, calling from WebWorks. I can help you get more customers. "
            "Prospect: We're fine. User: I understand, let me explain. Would you be interested in a demo?"
        )
        scores = heuristic_scores(transcript)
        assert scores.confidence_score == 4
        assert scores.overall_pitch_score == 5
        assert scores.clarity_score == 5
        assert scores.persuasiveness_score == 4
        assert scores.objection_handling_score == 6
        assert scores.closing_score == 6
        assert scores.tone_score == 2
        assert scores.overall_score == 5
        assert "average attempt" in scores.feedback
        assert scores.successful_sale is False

    def test_heuristics_are_harsh_on_empty_pitch(self):
        scores = heuristic_scores("hello hello hello hello hello hello")
        assert scores.overall_score == 1
        assert "weak sales call" in scores.feedback
        assert "Poor - No professional introduction detected" in scores.feedback

    def test_call_scores_clamp_and_coerce(self):
        scores = CallScores.model_validate(
            {"confidence_score": 14, "clarity_score": "7.6", "tone_score": -3, "overall_score": None,
             "feedback": ["Good opener.", "Weak close."]}
        )
        assert scores.confidence_score == 10
        assert scores.clarity_score == 8
        assert scores.tone_score == 0
        assert scores.overall_score == 0
        assert scores.feedback == "Good opener.\nWeak close."

    def test_call_scores_reject_non_numeric(self):
        with pytest.raises(ValueError):
            CallScores.model_validate({"confidence_score": "great"})


class TestParseLLMJson:

    def test_plain_json(self):
        assert parse_llm_json('{"a": 1}') == {"a": 1}

    def test_fenced_json(self):
        assert parse_llm_json('```json\n{"a": 1}\n```') == {"a": 1}

    def test_json_with_chatter(self):
        assert parse_llm_json('Here is the analysis: {"a": {"b": 2}} Hope it helps!') == {"a": {"b": 2}}

    def test_empty_raises(self):
        with pytest.raises(AnalysisParseError):
            parse_llm_json("   ")

    def test_no_object_raises(self):
        with pytest.raises(AnalysisParseError):
            parse_llm_json("I can't help with that.")

    def test_array_raises(self):
        with pytest.raises(AnalysisParseError):
            parse_llm_json("[1, 2, 3]")


# ============================================================================
# 2. UPLOAD CRITIQUE
# ============================================================================

class TestUploadReview:

    def test_valid_critique(self):
        analysis = validate_upload_analysis(_valid_critique())
        assert analysis is not None
        assert analysis.objection_handling_scores.trust == 80

    def test_missing_field_rejected(self):
        data = _valid_critique()
        del data["better_responses"]
        assert validate_upload_analysis(data) is None

    def test_out_of_range_score_rejected(self):
        data = _valid_critique()
        data["confidence_score"] = 150
        assert validate_upload_analysis(data) is None

    def test_empty_strengths_rejected(self):
        data = _valid_critique()
        data["strengths"] = []
        assert validate_upload_analysis(data) is None

    def test_non_dict_rejected(self):
        assert validate_upload_analysis(["nope"]) is None

    def test_fallback(self):
        fallback = fallback_upload_analysis()
        assert fallback.confidence_score == 50
        assert fallback.objection_handling_scores.model_dump() == {
            "price": 50, "timing": 50, "trust": 50, "competitor": 50,
        }
        assert "manual review recommended" in fallback.weaknesses[0]

    def test_analysis_columns(self):
        cols = analysis_columns(validate_upload_analysis(_valid_critique()))
        assert cols["confidence_score"] == 72
        assert cols["ai_analysis"]["strengths"] == ["Friendly opener"]
        assert cols["better_responses"]["timing_concern"].startswith("What would need")


# ============================================================================
# 3. OBJECTIONS
# ============================================================================

class TestObjections:

    def test_detects_price_objection(self):
        found = detect_objections("That's too expensive for us right now")
        assert [o["type"] for o in found] == ["price"]
        assert found[0]["confidence"] == 1.0
        assert found[0]["keywords"][0] == "too expensive"
        assert "too expensive" in found[0]["context"]

    def test_single_keyword_is_not_enough(self):
        assert detect_objections("Can you do it now?") == []

    def test_multiple_objections_sorted(self):
        found = detect_objections("We are too busy and honestly it's too expensive")
        types = [o["type"] for o in found]
        assert set(types[:2]) == {"price", "timing"}
        confidences = [o["confidence"] for o in found]
        assert confidences == sorted(confidences, reverse=True)

    def test_no_objection(self):
        assert detect_objections("hello") == []
        assert detect_objections("") == []

    def test_coaching_personality_match(self):
        coaching = get_objection_coaching("price", "analytical")
        assert coaching["technique"] == "ROI analysis"

    def test_coaching_falls_back_to_professional(self):
        coaching = get_objection_coaching("authority", "skeptical")
        assert coaching["technique"] == "Stakeholder mapping"

    def test_coaching_falls_back_to_first_entry(self):
        coaching = get_objection_coaching("price", "enthusiastic")
        assert coaching["technique"] == "Value-based selling"

    def test_coaching_unknown_type(self):
        assert get_objection_coaching("need", "skeptical") is None

    def test_personality_guidance(self):
        assert get_personality_guidance("aggressive")["tone"] == "Professional and confident"
        assert get_personality_guidance("mystery") == PERSONALITY_COACHING["professional"]

    def test_moment_coaching(self):
        assert get_moment_coaching("closing", "enthusiastic").startswith("They're ready!")
        assert get_moment_coaching("closing", "mystery") is None
        assert get_moment_coaching("mystery", "skeptical") is None


# ============================================================================
# 4. MOMENTS
# ============================================================================

class TestMoments:

    def test_classifies_lines(self):
        transcript = (
            "User: Hi, this is Sam from WebWorks.\n"
            "Prospect: We already have a website, thanks.\n"
            "User: What would make it better for you?\n"
            "Prospect: Sounds good, send me something."
        )
        moments = extract_moments(transcript)
        assert [m["type"] for m in moments] == ["objection", "question", "closing"]
        assert [m["id"] for m in moments] == ["moment_1", "moment_2", "moment_3"]
        assert moments[0]["label"] == "Objection Handling"
        assert moments[0]["summary"] == 'Objection: "Prospect: We already have a website, thanks."'
        start = transcript.index("Prospect: We already")
        assert moments[0]["start_char"] == start
        assert moments[0]["end_char"] == start + len("Prospect: We already have a website, thanks.")
        assert all(m["difficulty"] in ("easy", "medium", "hard") for m in moments)

    def test_caps_at_five(self):
        transcript = "\n".join(f"Prospect: How does option {i} work?" for i in range(8))
        moments = extract_moments(transcript)
        assert len(moments) == 5
        assert moments == sorted(moments, key=lambda m: m["start_char"])

    def test_general_practice_fallback_is_deterministic(self):
        transcript = (
            "The weather is nice in the city and the parks are full of people today... "
            "Everyone seems to be enjoying the sunshine and the fresh air this week!! "
            "Another long sentence here that keeps going so it passes fifty chars"
        )
        first = extract_moments(transcript)
        assert [m["type"] for m in first] == ["opening", "general", "closing"]
        assert [m["start_char"] for m in first] == [0, 100, 200]
        assert first == extract_moments(transcript)

    def test_empty(self):
        assert extract_moments("") == []

    def test_difficulty(self):
        assert calculate_difficulty("No, I will never do that", "") == 3
        assert calculate_difficulty("x" * 101, "") == 2
        assert calculate_difficulty("fine", "") == 1
        assert difficulty_label(2) == "easy"
        assert difficulty_label(3) == "medium"
        assert difficulty_label(4) == "hard"
