from __future__ import annotations

import logging
from typing import Any, List, Optional

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from config.settings import Settings
from tutor.core.prompt import PRIMING_CONTEXT, PrimingContext, build_teach_prompt
from tutor.errors import ProviderError


logger = logging.getLogger("santi")

GEMINI_MODEL = "gemini-2.0-flash"

# Sampling for /ask only; /teach runs with the provider defaults.
ASK_TEMPERATURE = 0.7
ASK_TOP_P = 0.8
ASK_TOP_K = 40
ASK_MAX_OUTPUT_TOKENS = 2048

MISSING_KEY_MESSAGE = "API key not configured: set GEMINI_API_KEY in environment or .env"


def priming_messages(
    message: str, priming: PrimingContext = PRIMING_CONTEXT
) -> List[BaseMessage]:
    return [
        HumanMessage(content=priming.instruction),
        AIMessage(content=priming.acknowledgment),
        HumanMessage(content=message),
    ]


def extract_text(result: Any) -> str:
    """Pull plain text out of a chat model result.

    Newer Gemini models may return content as a list of parts instead of a
    single string; text parts are concatenated in order.
    """
    content = getattr(result, "content", result)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        chunks = []
        for part in content:
            if isinstance(part, str):
                chunks.append(part)
            elif isinstance(part, dict) and part.get("type", "text") == "text":
                chunks.append(str(part.get("text", "")))
        return "".join(chunks)
    return str(content or "")


class TutorClient:
    """Read-only handle on the Gemini models, built once at startup.

    ``chat_model`` serves /ask with the tuned sampling parameters,
    ``teach_model`` serves /teach with defaults. Either may be ``None`` when
    no API key is configured; calls then raise ``ProviderError``.
    """

    def __init__(
        self,
        chat_model: Optional[BaseChatModel],
        teach_model: Optional[BaseChatModel],
    ) -> None:
        self._chat_model = chat_model
        self._teach_model = teach_model

    @property
    def configured(self) -> bool:
        return self._chat_model is not None and self._teach_model is not None

    async def ask(self, message: str) -> str:
        model = self._require(self._chat_model)
        try:
            result = await model.ainvoke(priming_messages(message))
        except Exception as exc:
            raise ProviderError(str(exc)) from exc
        return extract_text(result)

    async def teach(self, topic: str) -> str:
        model = self._require(self._teach_model)
        try:
            result = await model.ainvoke(build_teach_prompt(topic))
        except Exception as exc:
            raise ProviderError(str(exc)) from exc
        return extract_text(result)

    @staticmethod
    def _require(model: Optional[BaseChatModel]) -> BaseChatModel:
        if model is None:
            raise ProviderError(MISSING_KEY_MESSAGE)
        return model


def build_tutor_client(settings: Settings) -> TutorClient:
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY not set; provider calls will fail until it is configured")
        return TutorClient(chat_model=None, teach_model=None)

    # max_retries=1 means a single attempt; failures surface to the caller.
    chat_model = ChatGoogleGenerativeAI(
        model=GEMINI_MODEL,
        google_api_key=settings.gemini_api_key,
        temperature=ASK_TEMPERATURE,
        top_p=ASK_TOP_P,
        top_k=ASK_TOP_K,
        max_output_tokens=ASK_MAX_OUTPUT_TOKENS,
        max_retries=1,
    )
    teach_model = ChatGoogleGenerativeAI(
        model=GEMINI_MODEL,
        google_api_key=settings.gemini_api_key,
        max_retries=1,
    )
    return TutorClient(chat_model=chat_model, teach_model=teach_model)
