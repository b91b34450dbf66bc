# chat/pipeline.py - URL-augmented chat completion
import time
from dataclasses import dataclass, field
from typing import List

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from config import (
    CONTEXT_LABEL,
    CRAWL_DEPTH,
    MAX_CONTEXT_CHARS,
    MAX_LINKS_PER_PAGE,
    NO_RESPONSE_FALLBACK,
    SYSTEM_PROMPT,
)
from ingestion.crawler import Crawler, PageResult
from utils.logger import get_pipeline_logger
from utils.urls import extract_urls, remove_urls

logger = get_pipeline_logger()


@dataclass
class PreparedPrompt:
    """Everything the pipeline derived from one message before calling the model."""
    urls: List[str]
    clean_message: str
    crawl_results: List[PageResult] = field(default_factory=list)
    context: str = ""
    messages: List[BaseMessage] = field(default_factory=list)


def build_messages(clean_message: str, context: str, has_urls: bool) -> List[BaseMessage]:
    """System instruction plus one user turn, with a context block only when URLs were given."""
    context_block = f"{CONTEXT_LABEL}{context}" if has_urls else ""
    return [
        SystemMessage(content=SYSTEM_PROMPT),
        HumanMessage(content=f"{clean_message}\n\n{context_block}"),
    ]


def _completion_text(result) -> str:
    content = getattr(result, "content", result)
    if isinstance(content, list):
        # Content blocks: keep the text parts
        content = "".join(
            block.get("text", "") if isinstance(block, dict) else str(block)
            for block in content
        )
    return content or ""


class ChatPipeline:
    """
    Answer a chat message, using the content of any URLs it mentions as context.

    The crawler and chat model are built once per process and injected.
    """

    def __init__(
        self,
        crawler: Crawler,
        chat_model,
        crawl_depth: int = CRAWL_DEPTH,
        max_links_per_page: int = MAX_LINKS_PER_PAGE,
        max_context_chars: int = MAX_CONTEXT_CHARS,
    ):
        self.crawler = crawler
        self.chat_model = chat_model
        self.crawl_depth = crawl_depth
        self.max_links_per_page = max_links_per_page
        self.max_context_chars = max_context_chars

    def prepare(self, message: str) -> PreparedPrompt:
        urls = extract_urls(message)
        prepared = PreparedPrompt(urls=urls, clean_message=remove_urls(message, urls))

        if urls:
            logger.info(f"Found {len(urls)} URL(s) in message, crawling...")
            for url in urls:
                result = self.crawler.crawl(url, self.crawl_depth, self.max_links_per_page)
                if result is not None:
                    prepared.crawl_results.append(result)

            scraped = "".join(result.render_text() for result in prepared.crawl_results)
            prepared.context = scraped[:self.max_context_chars]
            if len(scraped) > self.max_context_chars:
                logger.debug(f"Truncated context from {len(scraped)} to {self.max_context_chars} chars")

        prepared.messages = build_messages(prepared.clean_message, prepared.context, bool(urls))
        return prepared

    def handle(self, message: str) -> str:
        """Run the whole pipeline. Errors from the chat model propagate."""
        prepared = self.prepare(message)

        start_time = time.time()
        result = self.chat_model.invoke(prepared.messages)
        elapsed = time.time() - start_time
        logger.info(f"Completion received in {elapsed:.2f}s")

        return _completion_text(result) or NO_RESPONSE_FALLBACK
