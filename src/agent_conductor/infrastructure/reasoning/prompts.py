"""Prompt strings and tool schemas for the LLM reasoning service.

Tool definitions are sent via the OpenAI ``tools`` API parameter; the prompts
do not include JSON schemas or tool-call syntax instructions.
"""

from __future__ import annotations

from typing import Any, Dict, List, Sequence

from agent_conductor.domain import IntentType, ToolDefinition

CLASSIFY_INTENT_TOOL = "classify_intent"

SYSTEM_PROMPT_INTENT = """\
You classify software-engineering requests. Call the classify_intent tool exactly
once with the intent type that best matches the request, your confidence, and any
parameters you can extract (file paths, branch names, test filters, and so on).
Use "other" when nothing else fits.
"""

SYSTEM_PROMPT_NEXT_STEP = """\
You are an autonomous software engineering agent working towards the user's goal
with the tools provided.

## Rules
- Call at most ONE tool per turn. Choose the single most useful next action.
- Read the execution history first. Do not repeat a call that already succeeded
  with the same arguments.
- If a tool failed, either try a different approach or move on; do not retry the
  same call more than once.
- When the goal is achieved, or no tool can make further progress, reply with a
  short plain-text note and DO NOT call a tool. That ends the tool phase.
"""

SYSTEM_PROMPT_SYNTHESIS = """\
You write the final answer for the user. Base it only on the tool results
provided. Be specific, cite file names and figures from the results, and say
plainly when the results do not answer part of the request.
"""

SYSTEM_PROMPT_SUMMARY = """\
You compress an agent's tool-execution history into a short summary for later
sessions. Keep facts that would change future decisions: what was found, what
was changed, what failed and why. Omit raw output.
"""

# Keyword → intent fallback, used when the model gives no usable classification.
# Checked in order; first match wins.
INTENT_KEYWORDS: Dict[IntentType, List[str]] = {
    IntentType.SECURITY_SCAN: ["security", "vulnerab", "cve", "secret", "audit"],
    IntentType.RUN_TESTS: ["run test", "run the test", "pytest", "unit test", "test suite", "tests"],
    IntentType.CREATE_BRANCH: ["branch", "checkout -b"],
    IntentType.GENERATE_DOCS: ["document", "docs", "docstring", "readme"],
    IntentType.FIND_BUGS: ["bug", "crash", "broken", "error", "fix"],
    IntentType.OPTIMIZE_PERFORMANCE: ["performance", "optimi", "faster", "slow", "latency", "speed"],
    IntentType.REFACTOR: ["refactor", "clean up", "restructure", "rename", "simplify"],
    IntentType.ANALYZE_CODE: ["analy", "review", "explain", "understand", "inspect", "repo", "code"],
}


def classify_intent_tool_def() -> Dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": CLASSIFY_INTENT_TOOL,
            "description": "Record the classified intent of the user's request.",
            "parameters": {
                "type": "object",
                "properties": {
                    "intent": {
                        "type": "string",
                        "enum": [t.value for t in IntentType],
                        "description": "Intent type.",
                    },
                    "confidence": {
                        "type": "string",
                        "enum": ["low", "medium", "high"],
                    },
                    "parameters": {
                        "type": "object",
                        "description": "Extracted parameters (free-form).",
                    },
                },
                "required": ["intent", "confidence"],
            },
        },
    }


def tool_definition_to_openai(tool: ToolDefinition) -> Dict[str, Any]:
    """Render a catalog entry as an OpenAI function tool definition."""
    properties: Dict[str, Any] = {}
    for name, p in tool.parameters.items():
        prop: Dict[str, Any] = {"type": p.type, "description": p.description}
        if p.allowed_values:
            prop["enum"] = list(p.allowed_values)
        if p.default is not None:
            prop["default"] = p.default
        properties[name] = prop
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description,
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": tool.required_parameters,
            },
        },
    }


def tools_to_openai(catalog: Sequence[ToolDefinition]) -> List[Dict[str, Any]]:
    return [tool_definition_to_openai(t) for t in catalog]
