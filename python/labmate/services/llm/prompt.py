"""Provider-agnostic prompt rendering for completion requests.

- prompt.py produces a list of Turn objects; the adapter converts them.
- The research-assistant system turn is always first.
- History turns keep their order; any client-supplied system turns are dropped.

Validation:
- Total prompt size must not exceed max_chars (100,000 default)
"""

from collections.abc import Iterable

from labmate.services.llm.types import Turn

SYSTEM_PROMPT = """You are an advanced AI research assistant powered by GPT-5, designed specifically to help scientists with their research workflows. Your capabilities include:

1. **Experiment Design**: Create detailed, methodologically sound experimental protocols
2. **Literature Analysis**: Summarize and analyze scientific papers to identify research gaps
3. **Hypothesis Generation**: Develop testable hypotheses based on available data and theory
4. **Data Interpretation**: Explain complex research results in clear, accessible language
5. **Grant Writing**: Assist with crafting compelling research proposals and grant applications

Key guidelines:
- Use advanced multi-step reasoning to break down complex problems
- Provide evidence-based recommendations with proper scientific justification
- Consider experimental controls, statistical power, and reproducibility
- Reference relevant methodologies and best practices
- Be precise with scientific terminology while remaining accessible
- Always consider ethical implications and limitations

When helping with experiments, include:
- Clear hypotheses and objectives
- Detailed methodology and controls
- Sample size calculations when relevant
- Expected outcomes and interpretation guidelines
- Potential limitations and alternative approaches

For data analysis, provide:
- Statistical approach recommendations
- Interpretation of results in context
- Discussion of confidence levels and significance
- Suggestions for follow-up analyses

Always think step-by-step and show your reasoning process for complex scientific questions."""

MAX_PROMPT_CHARS = 100_000


class PromptTooLargeError(Exception):
    """Raised when rendered prompt exceeds size limit."""

    def __init__(self, actual_size: int, max_size: int):
        self.actual_size = actual_size
        self.max_size = max_size
        super().__init__(f"Prompt size {actual_size} exceeds max {max_size}")


def render_prompt(history: Iterable[Turn], system_prompt: str = SYSTEM_PROMPT) -> list[Turn]:
    """Build the turn list sent to the provider.

    Args:
        history: The client transcript, newest user turn last.
        system_prompt: System instructions.

    Returns:
        [system, *history] with non user/assistant turns removed.
    """
    turns = [Turn(role="system", content=system_prompt)]
    turns.extend(turn for turn in history if turn.role in ("user", "assistant"))
    return turns


def validate_prompt_size(turns: list[Turn], max_chars: int = MAX_PROMPT_CHARS) -> None:
    """Raise PromptTooLargeError if the summed turn content exceeds max_chars."""
    total = sum(len(t.content) for t in turns)
    if total > max_chars:
        raise PromptTooLargeError(total, max_chars)
