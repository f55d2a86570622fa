from typing import TypedDict, Optional, Dict, Any, List

from src.agents.extraction.normalizer import ExtractionContext
from src.agents.extraction.schemas import ExtractionResult


class ExtractionAgentState(TypedDict):
    context: ExtractionContext
    provider: Any  # StructuredProvider
    messages: List[Any]  # LangChain messages
    payload: Optional[Dict[str, Any]]
    result: Optional[ExtractionResult]
    error: Optional[Exception]
