"""Node functions for the extraction pipeline.

Each node is an async function that receives ``ExtractionAgentState`` and
returns a partial state dict. A classified failure is recorded in ``error``
and ends the run; the engine re-raises it.
"""

import logging
from typing import Dict, Any

from langchain_core.prompts import ChatPromptTemplate
from pydantic import ValidationError as PydanticValidationError

from src.agents.extraction.prompts import EXTRACTION_SYSTEM_PROMPT, EXTRACTION_USER_PROMPT
from src.agents.extraction.schemas import ExtractionResult
from src.shared.exceptions import ExtractionError, ExtractionSchemaError

logger = logging.getLogger(__name__)


def check_error(state: Dict[str, Any]) -> str:
    return "end" if state.get("error") is not None else "continue"


async def build_messages_node(state: Dict[str, Any]) -> Dict[str, Any]:
    context = state["context"]
    prompt = ChatPromptTemplate.from_messages([
        ("system", EXTRACTION_SYSTEM_PROMPT),
        ("user", EXTRACTION_USER_PROMPT),
    ])
    messages = prompt.format_messages(
        speaker_line=context.speaker_line,
        case_context=context.case_context,
        temporal_guidance=context.temporal_guidance,
        evidence_context=context.evidence_context,
        narrative=context.narrative,
    )
    return {"messages": messages}


async def extract_events_node(state: Dict[str, Any]) -> Dict[str, Any]:
    provider = state["provider"]
    try:
        payload = await provider.call(state["messages"], ExtractionResult)
    except ExtractionError as e:
        return {"error": e}
    return {"payload": payload}


async def validate_result_node(state: Dict[str, Any]) -> Dict[str, Any]:
    # Providers may hand back loosely typed JSON; the contract is re-checked here.
    try:
        result = ExtractionResult.model_validate(state["payload"])
    except PydanticValidationError as e:
        logger.error("Extraction payload failed validation: %s", e)
        return {"error": ExtractionSchemaError()}

    logger.info(
        "Extracted %d event(s), %d action item(s)",
        len(result.events),
        len(result.action_items),
    )
    return {"result": result}
