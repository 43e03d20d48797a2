# backend/tests/test_scripts.py
"""
Cold-call script writing:
1. Brief, critique and objection schemas
2. Offline template script
3. Script pipeline against a stubbed LLM
"""

import pytest
from pydantic import ValidationError

from pitchcoach.analysis.scripts import (
    ScriptAnalysis,
    ScriptBrief,
    fallback_script_analysis,
    template_script,
    validate_script_analysis,
    validate_script_objections,
)
from pitchcoach.pipelines.script_pipeline import (
    ScriptGenerationError,
    ScriptInputError,
    analyze_script,
    generate_script,
    generate_script_objections,
    rewrite_script,
)
from pitchcoach.services.openai_service import LLMUnavailableError

BRIEF = {
    "business_type": "Dental clinics",
    "product_service": "online booking software",
    "target_audience": "practice managers",
    "call_objective": "Book a 15 minute demo",
}

CRITIQUE = {
    "overall_score": 6,
    "strengths": ["Specific opener"],
    "weaknesses": ["No discovery questions"],
    "clarity_score": 7,
    "persuasiveness_score": 5,
    "structure_score": 6,
    "tone_score": 8,
    "call_to_action_score": 4,
    "detailed_feedback": "Good start, but you pitch before learning anything about them.",
    "suggested_improvements": ["Ask about their current booking process"],
    "best_practices": ["Lead with a question"],
}


# ============================================================================
# 1. SCHEMAS
# ============================================================================

class TestScriptBrief:

    def test_required_fields_are_trimmed(self):
        brief = ScriptBrief(**{**BRIEF, "business_type": "  Dental clinics  ", "company_name": "   "})
        assert brief.business_type == "Dental clinics"
        assert brief.company_name is None

    def test_blank_required_field_rejected(self):
        with pytest.raises(ValidationError):
            ScriptBrief(**{**BRIEF, "call_objective": "   "})

    def test_profile(self):
        assert ScriptBrief(**BRIEF).profile() == BRIEF


class TestScriptAnalysis:

    def test_scores_clamped_to_one_through_ten(self):
        analysis = ScriptAnalysis.model_validate({**CRITIQUE, "overall_score": 14, "tone_score": 0, "clarity_score": "6.6"})
        assert analysis.overall_score == 10
        assert analysis.tone_score == 1
        assert analysis.clarity_score == 7

    def test_single_string_lists_are_wrapped(self):
        analysis = ScriptAnalysis.model_validate({**CRITIQUE, "strengths": "Clear opener"})
        assert analysis.strengths == ["Clear opener"]

    def test_invalid_critique(self):
        assert validate_script_analysis({**CRITIQUE, "weaknesses": []}) is None
        assert validate_script_analysis({**CRITIQUE, "overall_score": "great"}) is None
        assert validate_script_analysis("not a dict") is None

    def test_fallback_critique(self):
        fallback = fallback_script_analysis()
        assert fallback.overall_score == 5
        assert fallback.call_to_action_score == 5
        assert len(fallback.suggested_improvements) == 3


class TestScriptObjections:

    def test_malformed_entries_are_dropped(self):
        data = {
            "objections": [
                {"objection": "We already use a system", "response": "What do you like least about it?"},
                {"objection": "", "response": "orphan"},
                "not a dict",
                {"objection": "Too expensive", "response": "Compared to a missed appointment?"},
            ]
        }
        pairs = validate_script_objections(data, limit=3)
        assert [p.objection for p in pairs] == ["We already use a system", "Too expensive"]

    def test_limit(self):
        data = {"objections": [{"objection": f"o{i}", "response": f"r{i}"} for i in range(12)]}
        assert len(validate_script_objections(data, limit=10)) == 10

    def test_wrong_shape(self):
        assert validate_script_objections({"objections": "none"}, limit=3) == []
        assert validate_script_objections(None, limit=3) == []


# ============================================================================
# 2. TEMPLATE SCRIPT
# ============================================================================

class TestTemplateScript:

    def test_sections_and_brief_details(self):
        script = template_script(ScriptBrief(**BRIEF, company_name="BookRight"))
        for heading in ("OPENING:", "VALUE PROPOSITION:", "DISCOVERY:", "HANDLING OBJECTIONS:", "CLOSE:"):
            assert heading in script
        assert "BookRight" in script
        assert "book a 15 minute demo" in script
        assert "online booking software" in script

    def test_placeholders_without_optional_fields(self):
        script = template_script(ScriptBrief(**BRIEF))
        assert "[Company Name]" in script
        assert "timing or budget" in script

    def test_known_objections_are_mentioned(self):
        script = template_script(ScriptBrief(**BRIEF, common_objections="We're locked into a contract"))
        assert "We're locked into a contract" in script


# ============================================================================
# 3. PIPELINE
# ============================================================================

class TestScriptPipeline:

    @pytest.mark.asyncio
    async def test_generate_script(self, fake_llm):
        fake_llm.chat_text.return_value = "OPENING:\nHi there..."

        result = await generate_script(ScriptBrief(**BRIEF), svc=fake_llm)

        assert result["script"] == "OPENING:\nHi there..."
        assert result["fallback_used"] is False
        assert result["business_profile"]["call_objective"] == "Book a 15 minute demo"
        prompt = fake_llm.chat_text.await_args.args[1]
        assert "Target Audience: practice managers" in prompt
        assert "Company Name: [Company Name]" in prompt

    @pytest.mark.asyncio
    async def test_generate_script_falls_back_to_template(self, fake_llm):
        fake_llm.chat_text.side_effect = LLMUnavailableError("down")

        result = await generate_script(ScriptBrief(**BRIEF), svc=fake_llm)

        assert result["fallback_used"] is True
        assert result["script"].startswith("OPENING:")

    @pytest.mark.asyncio
    async def test_analyze_script(self, fake_llm):
        fake_llm.chat_json.return_value = dict(CRITIQUE)

        result = await analyze_script("Hi, this is Sam from BookRight...", svc=fake_llm)

        assert result["fallback_used"] is False
        assert result["analysis"]["call_to_action_score"] == 4
        assert "Hi, this is Sam from BookRight" in fake_llm.chat_json.await_args.args[1]

    @pytest.mark.asyncio
    async def test_analyze_script_invalid_critique_uses_fallback(self, fake_llm):
        fake_llm.chat_json.return_value = {"overall_score": 8}

        result = await analyze_script("Hi, this is Sam...", svc=fake_llm)

        assert result["fallback_used"] is True
        assert result["analysis"]["overall_score"] == 5

    @pytest.mark.asyncio
    async def test_analyze_script_llm_unavailable_uses_fallback(self, fake_llm):
        fake_llm.chat_json.side_effect = LLMUnavailableError("down")
        result = await analyze_script("Hi, this is Sam...", svc=fake_llm)
        assert result["fallback_used"] is True

    @pytest.mark.asyncio
    async def test_analyze_blank_script(self, fake_llm):
        with pytest.raises(ScriptInputError):
            await analyze_script("   ", svc=fake_llm)
        fake_llm.chat_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rewrite_script(self, fake_llm):
        fake_llm.chat_text.return_value = "Better script"

        result = await rewrite_script("Old script", ScriptAnalysis.model_validate(CRITIQUE), svc=fake_llm)

        assert result == {"rewritten_script": "Better script"}
        prompt = fake_llm.chat_text.await_args.args[1]
        assert "Weaknesses: No discovery questions" in prompt
        assert "Overall Score: 6/10" in prompt

    @pytest.mark.asyncio
    async def test_rewrite_has_no_fallback(self, fake_llm):
        fake_llm.chat_text.side_effect = LLMUnavailableError("down")
        with pytest.raises(LLMUnavailableError):
            await rewrite_script("Old script", fallback_script_analysis(), svc=fake_llm)

    @pytest.mark.asyncio
    async def test_rewrite_requires_script(self, fake_llm):
        with pytest.raises(ScriptInputError):
            await rewrite_script("", fallback_script_analysis(), svc=fake_llm)

    @pytest.mark.asyncio
    async def test_initial_objections(self, fake_llm):
        fake_llm.chat_json.return_value = {
            "objections": [{"objection": f"o{i}", "response": f"r{i}"} for i in range(5)]
        }

        result = await generate_script_objections(ScriptBrief(**BRIEF), "initial", svc=fake_llm)

        assert result["requested"] == 3
        assert len(result["objections"]) == 3
        assert "generate 3 realistic" in fake_llm.chat_json.await_args.args[1]

    @pytest.mark.asyncio
    async def test_additional_objections_ask_for_ten(self, fake_llm):
        fake_llm.chat_json.return_value = {"objections": [{"objection": "o", "response": "r"}]}

        result = await generate_script_objections(ScriptBrief(**BRIEF), "additional", svc=fake_llm)

        assert result["requested"] == 10
        assert "generate 10 realistic" in fake_llm.chat_json.await_args.args[1]

    @pytest.mark.asyncio
    async def test_objections_without_usable_pairs(self, fake_llm):
        fake_llm.chat_json.return_value = {"objections": []}
        with pytest.raises(ScriptGenerationError):
            await generate_script_objections(ScriptBrief(**BRIEF), svc=fake_llm)
