from __future__ import annotations

import asyncio

import pytest

from gemini_service import ChatError, IdeaError, ImageError, InspirationIdea


class FakeSession:
    def __init__(self, reply="Murakaza neza!", error=None):
        self.reply = reply
        self.error = error
        self.sent = []
        self.gate = None

    async def send(self, text: str) -> str:
        self.sent.append(text)
        if self.gate is not None:
            await self.gate.wait()
        if self.error:
            raise ChatError(self.error)
        return self.reply


class FakeGateway:
    def __init__(self, session=None, idea=None, image_url="data:image/jpeg;base64,AAAA",
                 idea_error=None, image_error=None):
        self.session = session or FakeSession()
        self.idea = idea or InspirationIdea(
            destination_name="Lake Kivu",
            description="Calm waters and island sunsets.",
            image_prompt="Sunset over Lake Kivu",
        )
        self.image_url = image_url
        self.idea_error = idea_error
        self.image_error = image_error
        self.image_prompts = []
        self.idea_calls = 0
        self.image_gate = None

    def start_chat(self):
        return self.session

    async def get_idea(self) -> InspirationIdea:
        self.idea_calls += 1
        if self.idea_error:
            raise IdeaError(self.idea_error)
        return self.idea

    async def generate_image(self, prompt: str) -> str:
        self.image_prompts.append(prompt)
        if self.image_gate is not None:
            await self.image_gate.wait()
        if self.image_error:
            raise ImageError(self.image_error)
        return self.image_url


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def run():
    return asyncio.run
