"""Unit tests for chat transports."""
import json

import httpx
import pytest

from moodline.chat import CompanionChat
from moodline.config import (
    CONNECTION_ERROR_MESSAGE,
    FALLBACK_REPLY,
    HISTORY_WINDOW,
    PAYMENT_REQUIRED_MESSAGE,
    RATE_LIMIT_MESSAGE,
)
from moodline.errors import ChatTransportError
from moodline.storage import create_companion_store
from moodline.stream import ChatMessage, consume_reply
from moodline.transport import (
    ChatTransport,
    GatewayChatTransport,
    HttpChatTransport,
    build_gateway_messages,
    create_chat_transport,
    error_for_status,
)
from moodline.transport.websearch import prepare_user_message

SSE_BODY = (
    'data: {"choices":[{"delta":{"content":"You are not alone."}}]}\n\n'
    "data: [DONE]\n\n"
)


def _conversation(turns: int) -> list[ChatMessage]:
    return [
        ChatMessage(content=f"message {i}", is_user=(i % 2 == 0))
        for i in range(turns)
    ]


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class DroppedConnectionStream(httpx.AsyncByteStream):
    """Body that delivers one frame and then loses the connection."""

    async def __aiter__(self):
        yield b'data: {"choices":[{"delta":{"content":"Let me think"}}]}\n\n'
        raise httpx.ReadError("connection reset by peer")


class TestChatTransportInterface:
    """Tests for the abstract ChatTransport interface."""

    def test_transport_is_abstract(self):
        """Test that ChatTransport cannot be instantiated directly."""
        with pytest.raises(TypeError):
            ChatTransport()  # type: ignore


class TestErrorForStatus:
    """Tests for status to error mapping."""

    def test_rate_limited(self):
        error = error_for_status(429, "slow down")

        assert error.status_code == 429
        assert error.user_message == RATE_LIMIT_MESSAGE
        assert "slow down" in str(error)

    def test_payment_required(self):
        assert error_for_status(402).user_message == PAYMENT_REQUIRED_MESSAGE

    def test_other_status(self):
        error = error_for_status(500)

        assert error.status_code == 500
        assert error.user_message not in (RATE_LIMIT_MESSAGE, PAYMENT_REQUIRED_MESSAGE)


class TestHttpChatTransport:
    """Tests for HttpChatTransport."""

    @pytest.mark.asyncio
    async def test_streams_body_and_sends_history(self):
        """Test the request body and the relayed stream."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(
                200,
                content=SSE_BODY.encode(),
                headers={"Content-Type": "text/event-stream"},
            )

        client = _client(handler)
        transport = HttpChatTransport("https://chat.test/fn", token="tok", client=client)
        history = _conversation(10)

        outcome = await consume_reply(transport.stream_reply("I feel lonely", history))

        assert outcome.text == "You are not alone."
        assert seen["auth"] == "Bearer tok"
        assert seen["body"]["userMessage"] == "I feel lonely"
        sent = seen["body"]["conversationHistory"]
        assert len(sent) == HISTORY_WINDOW
        assert sent[-1]["content"] == "message 9"
        assert sent[-1]["isUser"] is False

        await transport.close()
        assert not client.is_closed
        await client.aclose()

    @pytest.mark.asyncio
    async def test_error_status_raises(self):
        """Test a JSON error body is surfaced as ChatTransportError."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, json={"error": "Rate limits exceeded"})

        async with HttpChatTransport("https://chat.test/fn", client=_client(handler)) as transport:
            with pytest.raises(ChatTransportError) as exc_info:
                async for _ in transport.stream_reply("hi", []):
                    pass

        assert exc_info.value.status_code == 429
        assert exc_info.value.user_message == RATE_LIMIT_MESSAGE
        assert "Rate limits exceeded" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_network_error_wrapped(self):
        """Test connection failures become ChatTransportError."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("no route to host", request=request)

        transport = HttpChatTransport("https://chat.test/fn", client=_client(handler))

        outcome = await consume_reply(transport.stream_reply("hi", []))

        assert outcome.failed
        assert outcome.error.status_code is None
        assert outcome.message is None


class TestGatewayMessages:
    """Tests for gateway prompt assembly."""

    def test_message_order_and_window(self):
        """Test system prompt, trailing history, then the user message."""
        messages = build_gateway_messages("How do I relax?", _conversation(9))

        assert messages[0]["role"] == "system"
        assert "MOOD_LOG:" in messages[0]["content"]
        assert len(messages) == 1 + HISTORY_WINDOW + 1
        assert messages[1]["content"] == "message 3"
        assert messages[1]["role"] == "assistant"
        assert messages[2]["role"] == "user"
        assert messages[-1] == {"role": "user", "content": "How do I relax?"}

    def test_search_context_in_system_prompt(self):
        """Test web search results are appended to the system prompt."""
        messages = build_gateway_messages("q", [], search_context="Web Search Results:\nSleep matters")

        assert messages[0]["content"].endswith("Web Search Results:\nSleep matters")


class TestWebSearch:
    """Tests for [Web Search] message preparation."""

    @pytest.mark.asyncio
    async def test_plain_message_untouched(self):
        """Test ordinary messages skip the lookup."""
        def handler(request):  # pragma: no cover
            raise AssertionError("no lookup expected")

        async with _client(handler) as client:
            assert await prepare_user_message(client, "hello") == ("hello", "")

    @pytest.mark.asyncio
    async def test_abstract_result(self):
        """Test the abstract text is used when present."""
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["q"] == "box breathing"
            return httpx.Response(200, json={"AbstractText": "A four-step technique."})

        async with _client(handler) as client:
            message, context = await prepare_user_message(client, "[Web Search] box breathing")

        assert context == "Web Search Results:\nA four-step technique."
        assert message.startswith('User searched for: "box breathing".')

    @pytest.mark.asyncio
    async def test_related_topics(self):
        """Test up to three related topics are listed."""
        topics = [{"Text": f"topic {i}"} for i in range(5)] + [{"Name": "group"}]

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"AbstractText": "", "RelatedTopics": topics})

        async with _client(handler) as client:
            _, context = await prepare_user_message(client, "[Web Search] sleep")

        assert context == "Web Search Results:\n• topic 0\n• topic 1\n• topic 2"

    @pytest.mark.asyncio
    async def test_no_results(self):
        """Test an empty answer says nothing was found."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={})

        async with _client(handler) as client:
            message, context = await prepare_user_message(client, "[Web Search] xyz")

        assert context == ""
        assert "No results found." in message

    @pytest.mark.asyncio
    async def test_lookup_failure_falls_back(self):
        """Test a failed lookup asks for general information instead."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        async with _client(handler) as client:
            message, context = await prepare_user_message(client, "[Web Search] grief")

        assert context == ""
        assert message == 'User tried to search for: "grief". Please provide general information about this topic.'


class TestGatewayChatTransport:
    """Tests for GatewayChatTransport against a mocked gateway."""

    @pytest.mark.asyncio
    async def test_relays_raw_stream(self):
        """Test the gateway's event stream is relayed byte for byte."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(
                200,
                content=SSE_BODY.encode(),
                headers={"Content-Type": "text/event-stream"},
            )

        transport = GatewayChatTransport(
            api_key="gw-key",
            base_url="https://gateway.test/v1",
            http_client=_client(handler),
            search_client=_client(handler),
        )

        outcome = await consume_reply(transport.stream_reply("hi", _conversation(2)))

        assert outcome.text == "You are not alone."
        assert seen["auth"] == "Bearer gw-key"
        assert seen["body"]["stream"] is True
        assert seen["body"]["model"] == transport.model
        assert seen["body"]["messages"][-1] == {"role": "user", "content": "hi"}
        await transport.close()

    @pytest.mark.asyncio
    async def test_status_error_mapped(self):
        """Test gateway rejections become ChatTransportError."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(402, json={"error": {"message": "Payment required"}})

        transport = GatewayChatTransport(
            api_key="gw-key",
            base_url="https://gateway.test/v1",
            max_retries=0,
            http_client=_client(handler),
            search_client=_client(handler),
        )

        outcome = await consume_reply(transport.stream_reply("hi", []))

        assert outcome.failed
        assert outcome.error.status_code == 402
        assert outcome.error.user_message == PAYMENT_REQUIRED_MESSAGE
        await transport.close()

    @pytest.mark.asyncio
    async def test_dropped_connection_mid_stream(self):
        """Test a connection lost while streaming keeps the partial text."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                headers={"Content-Type": "text/event-stream"},
                stream=DroppedConnectionStream(),
            )

        transport = GatewayChatTransport(
            api_key="gw-key",
            base_url="https://gateway.test/v1",
            max_retries=0,
            http_client=_client(handler),
            search_client=_client(handler),
        )

        outcome = await consume_reply(transport.stream_reply("hi", []))

        assert outcome.failed
        assert isinstance(outcome.error, ChatTransportError)
        assert outcome.error.user_message == CONNECTION_ERROR_MESSAGE
        assert outcome.text == "Let me think"
        await transport.close()

    @pytest.mark.asyncio
    async def test_dropped_connection_shows_fallback(self):
        """Test the conversation falls back when the gateway drops mid-reply."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                headers={"Content-Type": "text/event-stream"},
                stream=DroppedConnectionStream(),
            )

        notices = []
        store = create_companion_store("memory")
        transport = GatewayChatTransport(
            api_key="gw-key",
            base_url="https://gateway.test/v1",
            max_retries=0,
            http_client=_client(handler),
            search_client=_client(handler),
        )

        async with store:
            chat = await CompanionChat.open(
                store, transport, on_error=lambda title, text: notices.append(text)
            )
            outcome = await chat.send("hello")
            await chat.close()
            stored = await store.get_messages(chat.session.id)

        assert outcome.failed
        assert notices == [CONNECTION_ERROR_MESSAGE]
        assert chat.messages[-1].content == FALLBACK_REPLY
        assert [m.content for m in stored] == ["hello", "Let me think"]
        await transport.close()

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_real_gateway(self, gateway_api_key):
        """Integration test: stream a reply from the real gateway."""
        if not gateway_api_key:
            pytest.skip("GATEWAY_API_KEY not set")

        async with GatewayChatTransport(api_key=gateway_api_key) as transport:
            outcome = await consume_reply(transport.stream_reply("I had a calm day.", []))

        assert outcome.text
        assert "MOOD_LOG" not in outcome.text


class TestTransportFactory:
    """Tests for create_chat_transport."""

    def test_create_http(self):
        transport = create_chat_transport("http", url="https://chat.test/fn")
        assert isinstance(transport, HttpChatTransport)
        assert transport.url == "https://chat.test/fn"

    def test_create_gateway(self):
        transport = create_chat_transport("GATEWAY", api_key="k", model="m")
        assert isinstance(transport, GatewayChatTransport)
        assert transport.model == "m"

    def test_missing_config(self):
        with pytest.raises(TypeError):
            create_chat_transport("http")
        with pytest.raises(TypeError):
            create_chat_transport("gateway")

    def test_unknown_transport(self):
        with pytest.raises(ValueError, match="Unsupported transport"):
            create_chat_transport("carrier-pigeon")
