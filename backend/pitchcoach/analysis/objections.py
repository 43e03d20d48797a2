# backend/pitchcoach/analysis/objections.py
"""
Objection detection and personality-aware coaching tables.

Detection is keyword based and runs on every prospect utterance, so it must
stay cheap. Coaching lookups never raise; unknown keys fall back.
"""
from typing import Dict, List, Optional

OBJECTION_TYPES = ("price", "timing", "trust", "authority", "need", "competitor", "budget", "feature")

PHRASE_WEIGHT = 0.8
KEYWORD_WEIGHT = 0.3
MIN_CONFIDENCE = 0.3

OBJECTION_PATTERNS: Dict[str, Dict[str, List[str]]] = {
    "price": {
        "keywords": ["expensive", "costly", "price", "afford", "budget", "cheap", "investment", "roi", "cost"],
        "phrases": ["too expensive", "out of budget", "can't afford", "too much money", "cheaper alternative"],
    },
    "timing": {
        "keywords": ["time", "later", "busy", "now", "rush", "urgency", "priority", "schedule"],
        "phrases": ["not the right time", "too busy", "maybe later", "not a priority", "bad timing"],
    },
    "trust": {
        "keywords": ["trust", "skeptical", "doubt", "unsure", "risky", "guarantee", "proof", "credible"],
        "phrases": ["don't trust", "seems risky", "not convinced", "need proof", "sounds too good"],
    },
    "authority": {
        "keywords": ["decision", "boss", "manager", "team", "committee", "approval", "consult"],
        "phrases": ["need to ask", "not my decision", "talk to my boss", "team decision", "need approval"],
    },
    "need": {
        "keywords": ["need", "problem", "issue", "challenge", "satisfied", "current", "working"],
        "phrases": ["don't need", "working fine", "no problem", "satisfied with current", "not necessary"],
    },
    "competitor": {
        "keywords": ["competitor", "alternative", "comparing", "other", "vendor", "similar", "options"],
        "phrases": ["looking at others", "comparing options", "other vendors", "similar products", "alternatives"],
    },
    "budget": {
        "keywords": ["budget", "allocated", "funds", "financial", "quarter", "fiscal", "spending"],
        "phrases": ["no budget", "budget constraints", "already allocated", "next quarter", "financial approval"],
    },
    "feature": {
        "keywords": ["feature", "functionality", "capability", "missing", "lacks", "doesn't do"],
        "phrases": ["missing feature", "doesn't have", "can't do", "lacks functionality", "need more"],
    },
}

PERSONALITY_COACHING: Dict[str, Dict[str, str]] = {
    "skeptical": {
        "approach": "Provide concrete evidence and social proof",
        "tone": "Patient and fact-based",
        "avoid": "Pressure tactics or over-enthusiasm",
    },
    "aggressive": {
        "approach": "Stay calm, acknowledge their directness, focus on business value",
        "tone": "Professional and confident",
        "avoid": "Getting defensive or matching their aggression",
    },
    "analytical": {
        "approach": "Present detailed data, ROI calculations, and logical arguments",
        "tone": "Methodical and thorough",
        "avoid": "Emotional appeals or rushing the process",
    },
    "enthusiastic": {
        "approach": "Match their energy, focus on exciting benefits and possibilities",
        "tone": "Energetic and optimistic",
        "avoid": "Being too conservative or dampening their enthusiasm",
    },
    "professional": {
        "approach": "Maintain professional standards, focus on business outcomes",
        "tone": "Balanced and respectful",
        "avoid": "Being too casual or overly aggressive",
    },
}

OBJECTION_COACHING_RESPONSES: Dict[str, Dict[str, Dict[str, str]]] = {
    "price": {
        "skeptical": {
            "immediate": "Acknowledge the price concern and ask about their decision criteria beyond cost.",
            "follow_up": "Share ROI data and case studies showing value delivered to similar companies.",
            "technique": "Value-based selling",
            "example": "I understand price is important. What other factors will influence your decision?",
        },
        "aggressive": {
            "immediate": "Don't defend the price. Instead, focus on the business impact and urgency.",
            "follow_up": "Quantify the cost of not solving their problem now.",
            "technique": "Cost of inaction",
            "example": "What's the cost to your business of waiting another quarter to solve this?",
        },
        "analytical": {
            "immediate": "Break down the ROI with specific numbers and compare to their current costs.",
            "follow_up": "Offer to create a detailed cost-benefit analysis for their review.",
            "technique": "ROI analysis",
            "example": "Let me show you exactly how this pays for itself in the first 6 months...",
        },
    },
    "timing": {
        "skeptical": {
            "immediate": "Ask about what would need to change for timing to be right.",
            "follow_up": "Explore the consequences of delaying and create urgency around their pain points.",
            "technique": "Implication questions",
            "example": "What would need to happen for this to become a priority?",
        },
        "aggressive": {
            "immediate": "Acknowledge their schedule but redirect to the cost of waiting.",
            "follow_up": "Create a timeline that shows gradual implementation to reduce disruption.",
            "technique": "Phased implementation",
            "example": "I respect your timeline. What if we could phase this in to minimize disruption?",
        },
    },
    "trust": {
        "skeptical": {
            "immediate": "Acknowledge their caution and offer references from similar companies.",
            "follow_up": "Provide case studies and offer to connect them with existing customers.",
            "technique": "Social proof",
            "example": "I understand your caution. Would you like to speak with a customer in your industry?",
        },
        "analytical": {
            "immediate": "Offer detailed documentation, security certifications, and compliance information.",
            "follow_up": "Provide technical specifications and invite them to conduct due diligence.",
            "technique": "Evidence-based trust building",
            "example": "I'll send you our security certifications and compliance documentation.",
        },
    },
    "authority": {
        "professional": {
            "immediate": "Respect their process and ask about decision-making criteria and timeline.",
            "follow_up": "Offer to present to the decision-makers or provide materials for them to share.",
            "technique": "Stakeholder mapping",
            "example": "Who else would be involved in this decision, and what's important to them?",
        },
    },
}

MOMENT_COACHING: Dict[str, Dict[str, str]] = {
    "objection": {
        "skeptical": "This prospect raised an objection earlier. Stay patient, acknowledge their concern, and provide evidence.",
        "aggressive": "They objected before. Be direct but respectful. Focus on business value, not features.",
        "analytical": "Previous objection detected. Come prepared with data, ROI calculations, and logical arguments.",
        "professional": "They had concerns earlier. Address them systematically and ask clarifying questions.",
        "enthusiastic": "They objected but seem engaged. Channel their energy toward solution benefits.",
    },
    "question": {
        "skeptical": "They're asking questions - that's good! Answer thoroughly and ask follow-ups to build trust.",
        "aggressive": "Direct questions from an aggressive prospect. Be concise and confident in your responses.",
        "analytical": "Detailed questions expected. Provide comprehensive answers with supporting data.",
        "professional": "Professional inquiry. Match their level of detail and follow proper business etiquette.",
        "enthusiastic": "They're curious! Match their energy and expand on points that excite them.",
    },
    "closing": {
        "skeptical": "Closing moment with a skeptical prospect. Focus on risk mitigation and guarantees.",
        "aggressive": "Time to close with an aggressive buyer. Be direct about next steps and timeline.",
        "analytical": "Closing with analytical prospect. Present logical next steps and clear implementation plan.",
        "professional": "Professional closing opportunity. Outline mutual benefits and formal next steps.",
        "enthusiastic": "They're ready! Capture their enthusiasm and move toward commitment.",
    },
    "discovery": {
        "skeptical": "Discovery phase with skeptical prospect. Ask open questions and listen more than you talk.",
        "aggressive": "Discovery with aggressive personality. Ask direct questions about business impact.",
        "analytical": "Thorough discovery needed. Ask detailed questions about processes and metrics.",
        "professional": "Professional discovery. Ask strategic questions about goals and challenges.",
        "enthusiastic": "Discovery with enthusiastic prospect. Let them talk while you uncover needs.",
    },
    "presentation": {
        "skeptical": "Presenting to skeptical audience. Use case studies and third-party validation.",
        "aggressive": "Present to aggressive prospect. Lead with bottom-line impact and business value.",
        "analytical": "Analytical presentation needed. Include detailed features, specs, and comparisons.",
        "professional": "Professional presentation. Balance features with business outcomes.",
        "enthusiastic": "Present to enthusiastic prospect. Highlight exciting possibilities and benefits.",
    },
}


def detect_objections(message: str) -> List[dict]:
    """
    Score each objection category against a prospect message.

    Returns dicts with type, confidence, keywords and context, highest
    confidence first.
    """
    lower = (message or "").lower()
    found: List[dict] = []

    for obj_type, patterns in OBJECTION_PATTERNS.items():
        confidence = 0.0
        matched: List[str] = []

        for phrase in patterns["phrases"]:
            if phrase in lower:
                confidence += PHRASE_WEIGHT
                matched.append(phrase)
        for keyword in patterns["keywords"]:
            if keyword in lower:
                confidence += KEYWORD_WEIGHT
                matched.append(keyword)

        confidence = min(confidence, 1.0)
        if confidence > MIN_CONFIDENCE and matched:
            pos = lower.find(matched[0])
            found.append(
                {
                    "type": obj_type,
                    "confidence": round(confidence, 2),
                    "keywords": matched,
                    "context": lower[max(0, pos - 20):min(len(lower), pos + 50)],
                }
            )

    # sorted() is stable, so ties keep category order
    return sorted(found, key=lambda o: o["confidence"], reverse=True)


def get_objection_coaching(objection_type: str, personality: str) -> Optional[Dict[str, str]]:
    responses = OBJECTION_COACHING_RESPONSES.get(objection_type)
    if not responses:
        return None
    if personality in responses:
        return responses[personality]
    if "professional" in responses:
        return responses["professional"]
    return next(iter(responses.values()))


def get_personality_guidance(personality: str) -> Dict[str, str]:
    return PERSONALITY_COACHING.get(personality, PERSONALITY_COACHING["professional"])


def get_moment_coaching(moment_type: str, personality: str) -> Optional[str]:
    return MOMENT_COACHING.get(moment_type, {}).get(personality)
