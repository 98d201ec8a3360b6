"""Unit tests for the HTTP cleanup and transcription clients."""

import asyncio

import pytest
from aiohttp import test_utils, web

from voiceintake.errors import TranscriptionError
from voiceintake.transcription.chatgpt_cleaning_engine import ChatGPTCleaningEngine
from voiceintake.transcription.remote import HttpCleaningEngine, HttpTranscriber


async def serve(path, handler, coro_factory):
    app = web.Application()
    app.router.add_post(path, handler)
    async with test_utils.TestServer(app) as server:
        return await coro_factory(str(server.make_url(path)))


@pytest.mark.unit
class TestHttpCleaningEngine:
    """Test cases for HttpCleaningEngine."""

    def test_clean(self):
        received = []

        async def handler(request):
            received.append(await request.json())
            return web.json_response({"cleaned": " I have a sore throat. "})

        async def call(url):
            return await HttpCleaningEngine(url).clean("i have a saw throat", "es-MX")

        result = asyncio.run(serve("/api/speech/clean", handler, call))

        assert result == "I have a sore throat."
        assert received == [{"text": "i have a saw throat", "language": "es"}]

    def test_error_status(self):
        async def handler(request):
            return web.Response(status=500, text="broken")

        async def call(url):
            with pytest.raises(TranscriptionError):
                await HttpCleaningEngine(url).clean("text", "en")

        asyncio.run(serve("/api/speech/clean", handler, call))

    def test_missing_cleaned_field(self):
        async def handler(request):
            return web.json_response({"other": 1})

        async def call(url):
            with pytest.raises(TranscriptionError):
                await HttpCleaningEngine(url).clean("text", "en")

        asyncio.run(serve("/api/speech/clean", handler, call))


@pytest.mark.unit
class TestHttpTranscriber:
    """Test cases for HttpTranscriber."""

    def test_transcribe_posts_multipart_audio(self):
        received = {}

        async def handler(request):
            form = await request.post()
            audio = form["audio"]
            received["filename"] = audio.filename
            received["bytes"] = audio.file.read()
            received["language"] = form["language"]
            return web.json_response({"text": "  my ear hurts "})

        async def call(url):
            transcriber = HttpTranscriber(url)
            text = await transcriber.transcribe(b"RIFF-container", "fr")
            return transcriber, text

        transcriber, text = asyncio.run(serve("/api/speech/stt", handler, call))

        assert text == "my ear hurts"
        assert received == {"filename": "speech.wav", "bytes": b"RIFF-container", "language": "fr"}
        assert transcriber.get_stats()["requests_completed"] == 1

    def test_error_status_is_not_a_network_error(self):
        async def handler(request):
            return web.Response(status=400, text="bad audio")

        async def call(url):
            with pytest.raises(TranscriptionError) as excinfo:
                await HttpTranscriber(url).transcribe(b"data", "en")
            return excinfo.value

        assert asyncio.run(serve("/api/speech/stt", handler, call)).network is False

    def test_connection_failure_is_a_network_error(self):
        transcriber = HttpTranscriber("http://127.0.0.1:9/api/speech/stt", timeout_seconds=2)

        with pytest.raises(TranscriptionError) as excinfo:
            asyncio.run(transcriber.transcribe(b"data", "en"))

        assert excinfo.value.network is True


@pytest.mark.unit
class TestChatGPTCleaningEngine:
    """Test cases for ChatGPTCleaningEngine."""

    def test_requires_api_key(self):
        with pytest.raises(ValueError):
            ChatGPTCleaningEngine(api_key="")

    def test_clean_uses_language_in_instruction(self):
        received = []

        async def handler(request):
            received.append((request.headers["Authorization"], await request.json()))
            return web.json_response({"choices": [{"message": {"content": " It hurts to swallow. "}}]})

        async def call(url):
            engine = ChatGPTCleaningEngine(api_key="sk-test")
            engine.base_url = url
            return await engine.clean("it hurts to swallow", "es")

        result = asyncio.run(serve("/v1/chat/completions", handler, call))

        authorization, body = received[0]
        assert result == "It hurts to swallow."
        assert authorization == "Bearer sk-test"
        assert "(Spanish)" in body["messages"][0]["content"]
        assert body["messages"][1] == {"role": "user", "content": "it hurts to swallow"}
