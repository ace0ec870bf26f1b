"""Prompt templates sent to the vision provider."""

ANALYSIS_PROMPT_TEMPLATE = (
    'Analyze this webpage to determine if the following is true: "{criteria}". '
    "Check elements like prices, availability, text content, and other visible information."
)

RESPONSE_FORMAT_INSTRUCTIONS = """

Return your response in this JSON format:
{
  "analysis": "A clear, concise summary of what you see on the page related to the condition",
  "criteriaMatched": true/false
}"""


def build_analysis_prompt(criteria: str) -> str:
    """Derive the analysis prompt for a task's notification criteria."""
    return ANALYSIS_PROMPT_TEMPLATE.format(criteria=criteria.strip())


def build_vision_prompt(criteria: str) -> str:
    """Full prompt for the vision model, including the expected JSON shape."""
    return build_analysis_prompt(criteria) + RESPONSE_FORMAT_INSTRUCTIONS
