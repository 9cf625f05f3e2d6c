"""
JSON schemas for structured oracle responses.

Each schema is a wrapped spec {'name', 'strict', 'schema'} as accepted by
OpenAIService._complete_json.
"""

_SCORE_FIELDS = [
    "overallMatchScore",
    "skillMatchScore",
    "experienceMatchScore",
    "cultureFitScore",
    "wellbeingMatchScore",
    "workSettingMatchScore",
    "salaryFitScore",
    "locationFitScore",
    "careerGrowthScore",
    "softSkillsScore",
]

_STRING_ARRAY = {"type": "array", "items": {"type": "string"}}

MATCH_ANALYSIS_SCHEMA = {
    "name": "match_analysis",
    "strict": True,
    "schema": {
        "type": "object",
        "properties": {
            **{name: {"type": "number"} for name in _SCORE_FIELDS},
            "matchBreakdown": {
                "type": "object",
                "properties": {
                    "strengths": _STRING_ARRAY,
                    "concerns": _STRING_ARRAY,
                    "recommendations": _STRING_ARRAY,
                    "keyInsights": _STRING_ARRAY,
                },
                "required": ["strengths", "concerns", "recommendations", "keyInsights"],
                "additionalProperties": False,
            },
        },
        "required": _SCORE_FIELDS + ["matchBreakdown"],
        "additionalProperties": False,
    },
}

MATCH_EXPLANATION_SCHEMA = {
    "name": "match_explanation",
    "strict": True,
    "schema": {
        "type": "object",
        "properties": {
            "summary": {"type": "string"},
            "matchedSkills": _STRING_ARRAY,
            "growthOpportunities": _STRING_ARRAY,
            "cultureFitHighlights": _STRING_ARRAY,
            "wellbeingAlignment": _STRING_ARRAY,
            "recommendations": _STRING_ARRAY,
            "strengthAreas": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "category": {"type": "string"},
                        "score": {"type": "number"},
                        "description": {"type": "string"},
                    },
                    "required": ["category", "score", "description"],
                    "additionalProperties": False,
                },
            },
            "improvementAreas": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "category": {"type": "string"},
                        "gap": {"type": "string"},
                        "suggestion": {"type": "string"},
                    },
                    "required": ["category", "gap", "suggestion"],
                    "additionalProperties": False,
                },
            },
        },
        "required": [
            "summary",
            "matchedSkills",
            "growthOpportunities",
            "cultureFitHighlights",
            "wellbeingAlignment",
            "recommendations",
            "strengthAreas",
            "improvementAreas",
        ],
        "additionalProperties": False,
    },
}
