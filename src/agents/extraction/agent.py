"""Extraction engine.

Graph topology::

    START → build_context → extract_events → validate_result → END
"""

from langgraph.graph import StateGraph, END

from src.agents.state import ExtractionAgentState
from src.agents.extraction.nodes import (
    build_messages_node,
    extract_events_node,
    validate_result_node,
    check_error,
)
from src.agents.extraction.normalizer import ExtractionContext
from src.agents.extraction.schemas import ExtractionResult
from src.llm.provider import StructuredProvider
from src.shared.exceptions import ExtractionSchemaError


def create_extraction_agent():
    workflow = StateGraph(ExtractionAgentState)

    workflow.add_node("build_context", build_messages_node)
    workflow.add_node("extract_events", extract_events_node)
    workflow.add_node("validate_result", validate_result_node)

    workflow.set_entry_point("build_context")
    workflow.add_edge("build_context", "extract_events")
    workflow.add_conditional_edges("extract_events", check_error, {
        "continue": "validate_result",
        "end": END,
    })
    workflow.add_edge("validate_result", END)

    return workflow.compile()


extraction_agent = create_extraction_agent()


class ExtractionEngine:
    """Turns a normalized context into a validated ``ExtractionResult``.

    Raises ``ExtractionSchemaError`` or ``ExtractionProviderError``; never
    returns a partial result.
    """

    def __init__(self, provider: StructuredProvider):
        self.provider = provider

    async def extract(self, context: ExtractionContext) -> ExtractionResult:
        state = await extraction_agent.ainvoke({
            "context": context,
            "provider": self.provider,
            "messages": [],
            "payload": None,
            "result": None,
            "error": None,
        })
        if state.get("error") is not None:
            raise state["error"]
        if state.get("result") is None:
            raise ExtractionSchemaError()
        return state["result"]
