# chat/llm.py
import os

from langchain_openai import ChatOpenAI

from config import CHAT_MAX_TOKENS, CHAT_MODEL, CHAT_TEMPERATURE, GROQ_BASE_URL


def get_chat_model(
    api_key: str = None,
    model: str = CHAT_MODEL,
    base_url: str = GROQ_BASE_URL,
) -> ChatOpenAI:
    """Chat model for Groq's OpenAI-compatible completion endpoint."""
    if api_key is None:
        api_key = os.getenv("GROQ_API_KEY")
    if not api_key:
        raise ValueError("Groq API key must be provided or set in GROQ_API_KEY environment variable")

    return ChatOpenAI(
        model=model,
        api_key=api_key,
        base_url=base_url,
        temperature=CHAT_TEMPERATURE,
        max_tokens=CHAT_MAX_TOKENS,
    )
