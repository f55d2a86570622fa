"""Schema-constrained calls against a generative provider.

``call(messages, schema)`` either returns the structured payload as a plain
dict, or raises one of the two classified extraction errors. It never
returns a partially parsed structure.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Protocol, Sequence

from langchain_core.exceptions import OutputParserException
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from src.config import settings
from src.llm.factory import get_evidence_llm, get_extraction_llm
from src.shared.exceptions import ExtractionProviderError, ExtractionSchemaError

logger = logging.getLogger(__name__)


class StructuredProvider(Protocol):
    async def call(self, messages: Sequence[BaseMessage], schema: type[BaseModel]) -> dict[str, Any]: ...


class StructuredLLMProvider:
    def __init__(self, llm_getter: Callable[[], BaseChatModel], timeout: float | None = None):
        self._llm_getter = llm_getter
        self.timeout = timeout if timeout is not None else settings.EXTRACTION_TIMEOUT_SECONDS

    async def call(self, messages: Sequence[BaseMessage], schema: type[BaseModel]) -> dict[str, Any]:
        try:
            llm = self._llm_getter()
            structured_llm = llm.with_structured_output(schema, include_raw=True)
            result = await asyncio.wait_for(structured_llm.ainvoke(list(messages)), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error("%s call timed out after %ss", schema.__name__, self.timeout)
            raise ExtractionProviderError() from e
        except (OutputParserException, PydanticValidationError) as e:
            logger.error("%s output failed to parse: %s", schema.__name__, e)
            raise ExtractionSchemaError() from e
        except Exception as e:
            # Rate limits, auth, network, provider 5xx: all surface as one category.
            logger.error("%s provider call failed: %s", schema.__name__, e)
            raise ExtractionProviderError() from e

        if result.get("parsing_error") is not None or result.get("parsed") is None:
            logger.error("%s output rejected: %s", schema.__name__, result.get("parsing_error"))
            raise ExtractionSchemaError()

        parsed = result["parsed"]
        if isinstance(parsed, BaseModel):
            return parsed.model_dump(mode="json")
        return dict(parsed)


def get_extraction_provider() -> StructuredLLMProvider:
    return StructuredLLMProvider(get_extraction_llm)


def get_evidence_provider() -> StructuredLLMProvider:
    return StructuredLLMProvider(get_evidence_llm)
