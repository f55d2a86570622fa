from src.llm.factory import (
    get_extraction_llm,
    get_evidence_llm,
    clear_llm_cache,
)
from src.llm.provider import (
    StructuredLLMProvider,
    get_extraction_provider,
    get_evidence_provider,
)
