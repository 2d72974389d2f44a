import asyncio
import json

from aiohttp import web
from aiohttp import test_utils

from supplychain_search.common.types import EnhancementResult, Unavailable
from supplychain_search.search.query_enhancer import (
    NullQueryEnhancer,
    PerplexityQueryEnhancer,
    clean_related_terms,
    create_query_enhancer,
    parse_enhancement
)

ENHANCER_JSON = {
    "enhancedQuery": "red sea shipping disruption",
    "relatedTerms": ["Houthi", "Suez Canal", "houthi", "", 7],
    "queryContext": "User is asking about shipping disruptions in the Red Sea",
    "enhancementType": "semantic",
    "confidenceScore": 0.9
}


# ============================================================================
# Response parsing
# ============================================================================

def test_parse_plain_json():
    result = parse_enhancement(json.dumps(ENHANCER_JSON), "red sea")
    assert isinstance(result, EnhancementResult)
    assert result.enhanced_query == "red sea shipping disruption"
    assert result.related_terms == ("houthi", "suez canal")
    assert result.query_context.startswith("User is asking")
    assert result.enhancement_type == "semantic"
    assert result.confidence_score == 0.9


def test_parse_json_in_code_block():
    text = "Here you go:\n```json\n" + json.dumps(ENHANCER_JSON) + "\n```\nHope it helps."
    result = parse_enhancement(text, "red sea")
    assert isinstance(result, EnhancementResult)
    assert result.enhanced_query == "red sea shipping disruption"


def test_parse_json_missing_enhanced_query_falls_back_to_raw_query():
    result = parse_enhancement(json.dumps({"relatedTerms": ["tariffs"]}), "trade war")
    assert result.enhanced_query == "trade war"
    assert result.related_terms == ("tariffs",)
    assert result.enhancement_type == "standard"
    assert result.confidence_score == 0.8


def test_confidence_is_clamped():
    high = parse_enhancement(json.dumps({"enhancedQuery": "x", "confidenceScore": 7}), "x")
    low = parse_enhancement(json.dumps({"enhancedQuery": "x", "confidenceScore": -2}), "x")
    junk = parse_enhancement(json.dumps({"enhancedQuery": "x", "confidenceScore": "high"}), "x")
    assert high.confidence_score == 1.0
    assert low.confidence_score == 0.0
    assert junk.confidence_score == 0.8


def test_unknown_enhancement_type_defaults_to_standard():
    result = parse_enhancement(json.dumps({"enhancedQuery": "x", "enhancementType": "magic"}), "x")
    assert result.enhancement_type == "standard"


def test_parse_markdown_response():
    text = (
        "### Enhanced Search\n"
        "- **enhancedQuery**: \"port congestion los angeles\"\n"
        "- **relatedTerms**:\n"
        "- \"long beach\"\n"
        "- vessel queue\n"
        "\n"
        "- **queryContext**: User wants West Coast port delays\n"
    )
    result = parse_enhancement(text, "la ports")
    assert isinstance(result, EnhancementResult)
    assert result.enhanced_query == "port congestion los angeles"
    assert "long beach" in result.related_terms
    assert "vessel queue" in result.related_terms
    assert result.query_context == "User wants West Coast port delays"


def test_parse_loose_json_like_text():
    text = 'enhancedQuery: "nearshoring mexico", relatedTerms: ["maquiladora", \'usmca\']'
    result = parse_enhancement(text, "nearshoring")
    assert result.enhanced_query == "nearshoring mexico"
    assert result.related_terms == ("maquiladora", "usmca")


def test_garbage_is_unavailable():
    assert parse_enhancement("I cannot help with that.", "q") == Unavailable("malformed response")
    assert parse_enhancement("   ", "q") == Unavailable("empty response")


def test_clean_related_terms():
    assert clean_related_terms([" Drayage ", "drayage", None, "", "Chassis"]) == ["drayage", "chassis"]


# ============================================================================
# Enhancer behaviour
# ============================================================================

def test_null_enhancer_is_unavailable():
    result = asyncio.run(NullQueryEnhancer().enhance("red sea"))
    assert result == Unavailable("disabled")


def test_no_api_key_skips_request():
    enhancer = PerplexityQueryEnhancer(api_key="", api_url="http://127.0.0.1:9/unreachable")
    result = asyncio.run(enhancer.enhance("red sea"))
    assert isinstance(result, Unavailable)
    assert result.reason == "no API key configured"


def test_create_query_enhancer_respects_flag():
    assert isinstance(create_query_enhancer(enabled=False), NullQueryEnhancer)
    assert isinstance(create_query_enhancer(enabled=True), PerplexityQueryEnhancer)


def run_against(handler, query="red sea", timeout_seconds=2.0):
    """Start a local completions endpoint and enhance one query against it."""
    async def scenario():
        app = web.Application()
        app.router.add_post("/chat/completions", handler)
        server = test_utils.TestServer(app)
        await server.start_server()
        try:
            enhancer = PerplexityQueryEnhancer(
                api_key="test-key",
                api_url=str(server.make_url("/chat/completions")),
                timeout_seconds=timeout_seconds
            )
            return await enhancer.enhance(query)
        finally:
            await server.close()

    return asyncio.run(scenario())


def test_successful_completion():
    seen = {}

    async def handler(request):
        seen['auth'] = request.headers.get("Authorization")
        seen['body'] = await request.json()
        return web.json_response({
            "choices": [{"message": {"content": json.dumps(ENHANCER_JSON)}}]
        })

    result = run_against(handler)

    assert isinstance(result, EnhancementResult)
    assert result.related_terms == ("houthi", "suez canal")
    assert seen['auth'] == "Bearer test-key"
    assert seen['body']['messages'][-1] == {"role": "user", "content": "red sea"}
    assert seen['body']['stream'] is False


def test_server_error_is_unavailable():
    async def handler(request):
        return web.Response(status=500, text="upstream exploded")

    assert run_against(handler) == Unavailable("bad response")


def test_missing_choices_is_unavailable():
    async def handler(request):
        return web.json_response({"id": "abc"})

    assert run_against(handler) == Unavailable("bad response")


def test_unparseable_message_is_unavailable():
    async def handler(request):
        return web.json_response({"choices": [{"message": {"content": "no idea"}}]})

    assert run_against(handler) == Unavailable("malformed response")


def test_slow_service_times_out():
    async def handler(request):
        await asyncio.sleep(1)
        return web.json_response({"choices": []})

    result = run_against(handler, timeout_seconds=0.2)
    assert isinstance(result, Unavailable)
    assert result == Unavailable("timeout")
