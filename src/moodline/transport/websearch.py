"""Instant-answer web lookups for ``[Web Search]`` messages."""

import httpx
from loguru import logger

from ..config import WEB_SEARCH_MAX_TOPICS, WEB_SEARCH_PREFIX, WEB_SEARCH_URL


def is_web_search(message: str) -> bool:
    return message.startswith(WEB_SEARCH_PREFIX)


async def search_context(client: httpx.AsyncClient, query: str) -> str:
    """Look a query up and format the result for the system prompt.

    Returns:
        "Web Search Results:" block, or an empty string when nothing was found

    Raises:
        httpx.HTTPError: On network failure or non-success status
    """
    response = await client.get(
        WEB_SEARCH_URL,
        params={"q": query, "format": "json", "no_html": "1", "skip_disambig": "1"},
    )
    response.raise_for_status()
    data = response.json()

    if data.get("AbstractText"):
        return f"Web Search Results:\n{data['AbstractText']}"

    topics = [
        topic.get("Text")
        for topic in (data.get("RelatedTopics") or [])[:WEB_SEARCH_MAX_TOPICS]
        if isinstance(topic, dict) and topic.get("Text")
    ]
    if topics:
        return "Web Search Results:\n• " + "\n• ".join(topics)
    return ""


async def prepare_user_message(client: httpx.AsyncClient, message: str) -> tuple[str, str]:
    """Rewrite a ``[Web Search]`` message into a prompt with its results.

    Returns:
        Tuple of (message for the model, search context for the system prompt).
        Ordinary messages come back unchanged with an empty context.
    """
    if not is_web_search(message):
        return message, ""

    query = message[len(WEB_SEARCH_PREFIX):].strip()
    logger.info(f"Performing web search: {query}")

    try:
        context = await search_context(client, query)
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"Web search failed for {query!r}: {e}")
        return (
            f'User tried to search for: "{query}". '
            "Please provide general information about this topic."
        ), ""

    if context:
        found = f"Here are the results:\n\n{context}"
    else:
        found = "No results found."
    return f'User searched for: "{query}". {found} Please provide a helpful response.', context
