import asyncio
import logging
from enum import Enum

from chat_markup import render
from gemini_service import (
    AssistantError,
    ChatError,
    GeminiGateway,
    IdeaError,
    ImageError,
    InitializationError,
)
from message_store import Message, MessageStore
from system_prompt import (
    CHAT_ERROR_TEXT,
    INSPIRATION_ERROR_TEXT,
    INSPIRATION_PLACEHOLDER,
    INSPIRATION_REQUEST,
    WELCOME_MESSAGE,
)

logger = logging.getLogger(__name__)


class FlowState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    IDEA_PENDING = "idea-pending"
    IMAGE_PENDING = "image-pending"


class SubmitRejected(ValueError):
    """A submit that was ignored: ``empty``, ``busy`` or ``unavailable``."""

    def __init__(self, reason, message=None):
        super().__init__(message or reason)
        self.reason = reason


class Assistant:
    """Owns one conversation: the chat session, the message log and the
    state of the chat and inspiration flows.

    All methods must run on the same event loop; nothing here is locked.
    """

    def __init__(self, gateway=None, session=None, init_error=None):
        self.gateway = gateway
        self.session = session
        self.init_error = init_error
        self.store = MessageStore()
        self.chat_state = FlowState.IDLE
        self.inspiration_state = FlowState.IDLE
        self.error = None
        self.last_failure = None
        self._tasks = set()

        if init_error is not None:
            self.error = f"Initialization failed: {init_error}"
        else:
            self.store.append(Message(role="model", text=WELCOME_MESSAGE))

    @classmethod
    def start(cls, gateway_factory=GeminiGateway.from_env):
        try:
            gateway = gateway_factory()
            session = gateway.start_chat()
        except Exception as e:
            if not isinstance(e, InitializationError):
                e = InitializationError(str(e))
            logger.error("Initialization error: %s", e)
            assistant = cls(init_error=e)
            assistant.last_failure = e
            return assistant
        return cls(gateway=gateway, session=session)

    @property
    def available(self):
        return self.session is not None

    @property
    def busy(self):
        return (self.chat_state is not FlowState.IDLE
                or self.inspiration_state is not FlowState.IDLE)

    def _fail(self, exc: AssistantError, text):
        self.error = text
        self.last_failure = exc

    # ── chat flow ──

    async def send_message(self, text) -> Message:
        text = (text or "").strip()
        if not text:
            raise SubmitRejected("empty", "Message cannot be empty")
        if not self.available:
            raise SubmitRejected("unavailable", "Chat session not initialized. Please refresh the page.")
        if self.chat_state is not FlowState.IDLE:
            raise SubmitRejected("busy", "A message is already being sent")

        self.chat_state = FlowState.SENDING
        self.error = None
        self.store.append(Message(role="user", text=text))
        try:
            reply = await self.session.send(text)
        except ChatError as e:
            logger.error("Chat send failed: %s", e)
            self._fail(e, CHAT_ERROR_TEXT)
            reply = CHAT_ERROR_TEXT
        finally:
            self.chat_state = FlowState.IDLE
        (message,) = self.store.append(Message(role="model", text=reply))
        return message

    # ── inspiration flow ──

    async def start_inspiration(self) -> int:
        """Append the request and its placeholder, then run the pipeline
        in the background. Returns the placeholder id."""
        if not self.available:
            raise SubmitRejected("unavailable", "Chat session not initialized. Please refresh the page.")
        if self.inspiration_state is not FlowState.IDLE:
            raise SubmitRejected("busy", "Inspiration is already on its way")

        self.inspiration_state = FlowState.IDEA_PENDING
        self.error = None
        _, placeholder = self.store.append(
            Message(role="user", text=INSPIRATION_REQUEST),
            Message(role="model", text=INSPIRATION_PLACEHOLDER),
        )
        self.store.hold(placeholder.id)

        task = asyncio.ensure_future(self._run_inspiration(placeholder.id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return placeholder.id

    async def inspire(self) -> Message:
        placeholder_id = await self.start_inspiration()
        await asyncio.gather(*self._tasks)
        return self.store.get(placeholder_id)

    async def _run_inspiration(self, placeholder_id):
        try:
            idea = await self.gateway.get_idea()
            self.store.update(
                placeholder_id,
                text=f"**{idea.destination_name}**\n\n{idea.description}",
                is_loading_image=True,
            )
            self.inspiration_state = FlowState.IMAGE_PENDING

            image_url = await self.gateway.generate_image(idea.image_prompt)
            self.store.update(placeholder_id, image_url=image_url, is_loading_image=False)
            logger.info("Inspiration ready: %s", idea.destination_name)
        except (IdeaError, ImageError) as e:
            logger.error("Inspiration generation error (%s): %s", e.kind, e)
            self.store.update(placeholder_id, text=INSPIRATION_ERROR_TEXT, is_loading_image=False)
            self._fail(e, INSPIRATION_ERROR_TEXT)
        finally:
            self.store.release(placeholder_id)
            self.inspiration_state = FlowState.IDLE

    # ── lifecycle ──

    def snapshot(self):
        messages = []
        for message in self.store:
            data = message.model_dump(by_alias=True, exclude_none=True)
            data["html"] = render(message.text)
            messages.append(data)
        return {
            "messages": messages,
            "chatState": self.chat_state.value,
            "inspirationState": self.inspiration_state.value,
            "busy": self.busy,
            "chatEnabled": self.available,
            "error": self.error,
        }

    async def close(self):
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self.session = None
        self.gateway = None
