"""ChatGPT cleaning engine for rewriting recognized speech."""

import logging
import aiohttp

from ..errors import TranscriptionError
from ..language import get_language_name

logger = logging.getLogger(__name__)

CLEANUP_INSTRUCTION = """You are a medical transcription cleanup assistant. A patient is describing their symptoms via speech recognition, which often mishears words. Clean up the text:

1. Fix speech recognition errors: use medical context to correct obvious mishearings, for example "saw throat" should be "sore throat".
2. Remove filler words such as "uh", "um", "like" and "you know".
3. Fix punctuation: proper spacing after periods, no run-on sentences.
4. Capitalize the first word of each sentence.
5. Keep it concise: preserve the patient's meaning but make it read naturally.

Keep the same language ({language}). Do NOT add commentary or explanations. Return ONLY the corrected text."""


class ChatGPTCleaningEngine:
    """Sends the cleanup instruction straight to the chat completions API."""

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", timeout_seconds: float = 10):
        """Initialize ChatGPT cleaning engine.

        Args:
            api_key: OpenAI API key
            model: ChatGPT model to use for cleaning
            timeout_seconds: Total request timeout
        """
        if not api_key:
            raise ValueError("OpenAI API key is required for the ChatGPT cleaning engine")
        self.api_key = api_key
        self.model = model
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.base_url = "https://api.openai.com/v1/chat/completions"

        logger.info(f"ChatGPTCleaningEngine initialized with model: {model}")

    async def clean(self, text: str, language: str) -> str:
        """Ask ChatGPT to clean a transcript.

        Raises:
            TranscriptionError: If the API answers with a non-200 status
        """
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

        data = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": CLEANUP_INSTRUCTION.format(language=get_language_name(language))},
                {"role": "user", "content": text},
            ],
            "temperature": 0.2,
            "max_tokens": 200
        }

        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.post(self.base_url, headers=headers, json=data) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise TranscriptionError(f"ChatGPT API error: {response.status} - {error_text}")

                result = await response.json()
                return result["choices"][0]["message"]["content"].strip()
