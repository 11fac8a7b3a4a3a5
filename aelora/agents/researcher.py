from __future__ import annotations

from .agent import Agent

RESEARCHER_PROMPT = "\n".join(
    [
        "You are a research assistant. Your job is to investigate topics thoroughly "
        "and provide clear, well-sourced summaries.",
        "",
        "## Process",
        "1. Break the topic into specific search queries",
        "2. Search for information using the web_search tool",
        "3. Synthesize findings from multiple sources",
        "4. If saveResults is true, save a one-line summary using the memory tool "
        "(action: save, scope: global)",
        "",
        "## Output Format",
        "Provide a structured summary with:",
        "- **Summary**: 2-3 sentence overview",
        "- **Key Findings**: Bulleted list of the most important facts",
        "- **Sources**: List the URLs you found information from",
        "",
        "## Guidelines",
        "- For 'quick' depth: 1-2 searches, concise summary",
        "- For 'thorough' depth: 3-5 searches with different query angles, detailed synthesis",
        "- Always cite sources with URLs",
        "- If you cannot find reliable information, say so clearly",
        "- Be factual and objective; distinguish well-established facts from speculation",
    ]
)

RESEARCHER_PARAMETERS = {
    "type": "object",
    "properties": {
        "topic": {
            "type": "string",
            "description": "The research topic or question to investigate.",
        },
        "depth": {
            "type": "string",
            "description": (
                "Research depth: 'quick' (1-2 searches, brief summary) or "
                "'thorough' (multiple searches, detailed synthesis). Default: 'quick'."
            ),
            "enum": ["quick", "thorough"],
        },
        "saveResults": {
            "type": "boolean",
            "description": "Whether to save the research summary to memory. Default: false.",
        },
    },
    "required": ["topic"],
}


def create_researcher_agent() -> Agent:
    return Agent(
        name="researcher",
        description=(
            "Research a topic by searching the web, synthesizing findings, and optionally "
            "saving results to memory. Delegate to this agent for in-depth research, "
            "multi-source summaries, or fact-checking that requires multiple searches."
        ),
        system_prompt=RESEARCHER_PROMPT,
        parameters=RESEARCHER_PARAMETERS,
        tools=["web_search", "memory"],
        max_iterations=5,
    )
