"""
Optional semantic query enhancement.

The enhancer sends the raw query to an external LLM service and gets back an
expanded query, related terms and a short context note. Any failure collapses
into an Unavailable result so the search carries on with the literal query.
"""

import asyncio
import json
import logging
import re
from typing import Any, Dict, List, Optional, Protocol

import aiohttp

from ..common.types import Enhancement, EnhancementResult, Unavailable
from ..config.search_config import (
    ENHANCER_CONFIG,
    ENHANCER_SYSTEM_PROMPT,
    PERPLEXITY_API_KEY
)

logger = logging.getLogger('search')

ENHANCEMENT_TYPES = {'semantic', 'natural-language', 'standard'}

# Patterns for pulling fields out of responses that are not clean JSON
CODE_BLOCK_PATTERN = re.compile(r'```(?:json)?\s*\n([\s\S]*?)\n```')
ENHANCED_QUERY_JSON = re.compile(r'enhancedQuery[\'":\s]*["\']([^"\']+)["\']', re.IGNORECASE)
ENHANCED_QUERY_MD = re.compile(
    r'-\s*\*\*enhancedQuery\*\*:\s*(?:"([^"]+)"|"?([^"\n]+)"?)', re.IGNORECASE
)
RELATED_TERMS_ARRAY = re.compile(r'relatedTerms[\'":\s]*\[(.*?)\]', re.IGNORECASE | re.DOTALL)
RELATED_TERMS_LIST = re.compile(r'relatedTerms.*?\n((?:-\s*(?:.*?)\n)+)', re.IGNORECASE)
QUOTED_STRING = re.compile(r'"([^"]+)"|\'([^\']+)\'')
LIST_ITEM = re.compile(r'-\s*(.*?)(?:\n|$)')
ENHANCEMENT_TYPE = re.compile(r'enhancementType[\'":\s]*["\']([^"\']+)["\']', re.IGNORECASE)
CONFIDENCE_SCORE = re.compile(r'confidenceScore[\'":\s]*([\d.]+)', re.IGNORECASE)
QUERY_CONTEXT_JSON = re.compile(r'queryContext[\'":\s]*["\']([^"\']+)["\']', re.IGNORECASE)
QUERY_CONTEXT_MD = re.compile(
    r'-\s*\*\*queryContext\*\*:\s*(?:"([^"]+)"|([^"\n]+))', re.IGNORECASE
)
QUERY_CONTEXT_HEADING = re.compile(
    r'(?:###\s*(?:Context|Query Context|User(?:\s*is)?)).*?\n(.*?)(?:\n\n|\n###|$)',
    re.IGNORECASE
)


class QueryEnhancer(Protocol):
    """Anything that can turn a raw query into an Enhancement."""

    async def enhance(self, raw_query: str) -> Enhancement:
        ...


class NullQueryEnhancer:
    """Enhancer used when AI expansion is not configured."""

    def __init__(self, reason: str = "disabled"):
        self.reason = reason

    async def enhance(self, raw_query: str) -> Enhancement:
        return Unavailable(self.reason)


class PerplexityQueryEnhancer:
    """
    Query enhancer backed by the Perplexity chat completions API.

    The outbound call is bounded by a total timeout and runs on the caller's
    task, so cancelling the search request cancels the HTTP request too.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        session: Optional[aiohttp.ClientSession] = None
    ):
        """
        Initialize enhancer.

        Args:
            api_key: Bearer token (defaults to PERPLEXITY_API_KEY)
            api_url: Chat completions endpoint
            model: Model name sent with each request
            timeout_seconds: Total time budget for one enhancement
            session: Shared aiohttp session (one is created per call if omitted)
        """
        self.api_key = api_key if api_key is not None else PERPLEXITY_API_KEY
        self.api_url = api_url or ENHANCER_CONFIG['api_url']
        self.model = model or ENHANCER_CONFIG['model']
        self.timeout_seconds = timeout_seconds or ENHANCER_CONFIG['timeout_seconds']
        self.session = session

    async def enhance(self, raw_query: str) -> Enhancement:
        """
        Enhance a raw search query.

        Args:
            raw_query: Query exactly as the user typed it

        Returns:
            EnhancementResult on success, Unavailable otherwise
        """
        if not self.api_key:
            return Unavailable("no API key configured")

        if not raw_query or not raw_query.strip():
            return Unavailable("empty query")

        logger.info(f"Enhancing search query: '{raw_query}'")

        try:
            content = await asyncio.wait_for(
                self._request_completion(raw_query),
                timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning(f"Query enhancer timed out after {self.timeout_seconds}s")
            return Unavailable("timeout")
        except aiohttp.ClientError as e:
            logger.warning(f"Query enhancer HTTP error: {e}")
            return Unavailable(f"http error: {e}")

        if content is None:
            return Unavailable("bad response")

        result = parse_enhancement(content, raw_query)
        if isinstance(result, EnhancementResult):
            logger.info(
                f"Enhanced query: '{result.enhanced_query}', "
                f"related terms: {', '.join(result.related_terms)}"
            )
        else:
            logger.warning(f"Could not parse enhancer response: {result.reason}")

        return result

    async def _request_completion(self, raw_query: str) -> Optional[str]:
        """
        POST the chat completion request and return the assistant message.

        Returns:
            Message content, or None when the response is unusable
        """
        payload = {
            'model': self.model,
            'messages': [
                {'role': 'system', 'content': ENHANCER_SYSTEM_PROMPT},
                {'role': 'user', 'content': raw_query}
            ],
            'temperature': ENHANCER_CONFIG['temperature'],
            'max_tokens': ENHANCER_CONFIG['max_tokens'],
            'stream': False
        }
        headers = {
            'Content-Type': 'application/json',
            'Authorization': f'Bearer {self.api_key}'
        }

        if self.session is not None:
            return await self._post(self.session, payload, headers)

        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            return await self._post(session, payload, headers)

    async def _post(
        self,
        session: aiohttp.ClientSession,
        payload: Dict[str, Any],
        headers: Dict[str, str]
    ) -> Optional[str]:
        async with session.post(self.api_url, json=payload, headers=headers) as response:
            if response.status != 200:
                details = await response.text()
                logger.warning(
                    f"Query enhancer API error: {response.status} {response.reason} - {details[:200]}"
                )
                return None

            try:
                data = await response.json(content_type=None)
            except (json.JSONDecodeError, aiohttp.ContentTypeError) as e:
                logger.warning(f"Query enhancer returned non-JSON body: {e}")
                return None

        try:
            return data['choices'][0]['message']['content']
        except (KeyError, IndexError, TypeError):
            logger.warning("Query enhancer response missing choices[0].message.content")
            return None


# ============================================================================
# Response parsing
# ============================================================================

def parse_enhancement(text: str, raw_query: str) -> Enhancement:
    """
    Parse the enhancer's message into an EnhancementResult.

    Accepts plain JSON, JSON inside a fenced code block, or a loose markdown
    rendering of the same fields.

    Args:
        text: Assistant message content
        raw_query: Original query (fallback for a missing enhanced query)

    Returns:
        EnhancementResult, or Unavailable if nothing usable was found
    """
    if not text or not text.strip():
        return Unavailable("empty response")

    json_text = text
    block = CODE_BLOCK_PATTERN.search(text)
    if block:
        json_text = block.group(1).strip()

    try:
        data = json.loads(json_text)
    except json.JSONDecodeError:
        data = None

    if isinstance(data, dict):
        return _from_json(data, raw_query)

    return _from_markdown(text, raw_query)


def _from_json(data: Dict[str, Any], raw_query: str) -> EnhancementResult:
    enhanced_query = data.get('enhancedQuery')
    if not isinstance(enhanced_query, str) or not enhanced_query.strip():
        enhanced_query = raw_query

    related = data.get('relatedTerms')
    related_terms = clean_related_terms(related if isinstance(related, list) else [])

    context = data.get('queryContext')

    return EnhancementResult(
        enhanced_query=enhanced_query.strip(),
        related_terms=tuple(related_terms),
        query_context=context if isinstance(context, str) and context.strip() else None,
        enhancement_type=_enhancement_type(data.get('enhancementType')),
        confidence_score=_confidence(data.get('confidenceScore'))
    )


def _from_markdown(text: str, raw_query: str) -> Enhancement:
    logger.debug("Attempting to parse markdown-formatted enhancer response")

    enhanced_query = None
    match = ENHANCED_QUERY_JSON.search(text)
    if match:
        enhanced_query = match.group(1)
    else:
        match = ENHANCED_QUERY_MD.search(text)
        if match:
            enhanced_query = match.group(1) or match.group(2)

    related_terms: List[str] = []
    array_match = RELATED_TERMS_ARRAY.search(text)
    if array_match:
        related_terms = [a or b for a, b in QUOTED_STRING.findall(array_match.group(1))]

    if not related_terms:
        list_match = RELATED_TERMS_LIST.search(text)
        if list_match:
            related_terms = [
                item.replace('"', '').replace("'", '').strip()
                for item in LIST_ITEM.findall(list_match.group(1))
            ]

    if not enhanced_query and not related_terms:
        return Unavailable("malformed response")

    type_match = ENHANCEMENT_TYPE.search(text)
    score_match = CONFIDENCE_SCORE.search(text)

    query_context = None
    match = QUERY_CONTEXT_JSON.search(text)
    if match:
        query_context = match.group(1)
    else:
        match = QUERY_CONTEXT_MD.search(text)
        if match:
            query_context = (match.group(1) or match.group(2) or '').strip()
        else:
            match = QUERY_CONTEXT_HEADING.search(text)
            if match:
                query_context = match.group(1).strip()

    return EnhancementResult(
        enhanced_query=(enhanced_query or raw_query).strip(),
        related_terms=tuple(clean_related_terms(related_terms)),
        query_context=query_context or None,
        enhancement_type=_enhancement_type(type_match.group(1) if type_match else None),
        confidence_score=_confidence(score_match.group(1) if score_match else None)
    )


def clean_related_terms(terms: List[Any]) -> List[str]:
    """Lowercase, trim and dedupe related terms, dropping non-strings and blanks."""
    seen = set()
    cleaned = []
    for term in terms:
        if not isinstance(term, str):
            continue
        term = term.strip().lower()
        if not term or term in seen:
            continue
        seen.add(term)
        cleaned.append(term)
    return cleaned


def _enhancement_type(value: Any) -> str:
    if isinstance(value, str) and value.lower() in ENHANCEMENT_TYPES:
        return value.lower()
    return 'standard'


def _confidence(value: Any) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return ENHANCER_CONFIG['default_confidence']
    return max(0.0, min(1.0, score))


def create_query_enhancer(enabled: Optional[bool] = None) -> QueryEnhancer:
    """
    Build the enhancer configured for this deployment.

    Args:
        enabled: Override ENHANCER_CONFIG['enabled']

    Returns:
        PerplexityQueryEnhancer when enabled, NullQueryEnhancer otherwise
    """
    if enabled is None:
        enabled = ENHANCER_CONFIG['enabled']

    if not enabled:
        logger.warning("PERPLEXITY_API_KEY is not set. AI-enhanced search is disabled.")
        return NullQueryEnhancer()

    return PerplexityQueryEnhancer()
