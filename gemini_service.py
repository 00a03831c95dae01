import base64
import io
import logging
import os

from dotenv import load_dotenv
from PIL import Image
from google import genai
from google.genai import types
from google.genai.types import Modality
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from system_prompt import SYSTEM_INSTRUCTION, INSPIRATION_PROMPT

load_dotenv()

logger = logging.getLogger(__name__)

CHAT_MODEL = os.environ.get("TOUR_CHAT_MODEL", "gemini-2.5-flash")
IDEA_MODEL = os.environ.get("TOUR_IDEA_MODEL", "gemini-2.5-flash")
IMAGE_MODEL = os.environ.get("TOUR_IMAGE_MODEL", "imagen-4.0-generate-001")

IMAGE_ASPECT_RATIO = "16:9"
IMAGE_MIME_TYPE = "image/jpeg"

INSPIRATION_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "destinationName": types.Schema(
            type=types.Type.STRING,
            description="The name of the travel destination.",
        ),
        "description": types.Schema(
            type=types.Type.STRING,
            description="A short, enticing description of the destination.",
        ),
        "imagePrompt": types.Schema(
            type=types.Type.STRING,
            description="A detailed, evocative prompt for an image generation model.",
        ),
    },
    required=["destinationName", "description", "imagePrompt"],
)


class AssistantError(Exception):
    """Base for failures the assistant reports to the user."""

    kind = "assistant"


class InitializationError(AssistantError):
    kind = "init"


class ChatError(AssistantError):
    kind = "chat"


class IdeaError(AssistantError):
    kind = "idea"


class ImageError(AssistantError):
    kind = "image"


class InspirationIdea(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    destination_name: str
    description: str
    image_prompt: str


def to_jpeg_data_uri(data, mime_type=None):
    """Encode image bytes as a self-contained JPEG data URI.

    Bytes in any other format are re-encoded through Pillow first.
    """
    if mime_type != IMAGE_MIME_TYPE:
        img = Image.open(io.BytesIO(data))
        if img.format != "JPEG":
            buf = io.BytesIO()
            img.convert("RGB").save(buf, format="JPEG", quality=90)
            data = buf.getvalue()
    b64 = base64.b64encode(data).decode("utf-8")
    return f"data:{IMAGE_MIME_TYPE};base64,{b64}"


class ChatSession:
    """One server-side conversation: system instruction plus turn history."""

    def __init__(self, chat, model):
        self._chat = chat
        self.model = model

    async def send(self, text: str) -> str:
        try:
            response = await self._chat.send_message(text)
        except Exception as e:
            logger.exception("Gemini chat error")
            raise ChatError("Chat request failed.") from e
        if not response.text:
            raise ChatError("Chat response was empty.")
        return response.text


class GeminiGateway:
    def __init__(self, client, chat_model=CHAT_MODEL, idea_model=IDEA_MODEL,
                 image_model=IMAGE_MODEL):
        self.client = client
        self.chat_model = chat_model
        self.idea_model = idea_model
        self.image_model = image_model

    @classmethod
    def from_env(cls):
        api_key = os.environ.get("GEMINI_API_KEY")
        if not api_key:
            raise InitializationError("GEMINI_API_KEY environment variable not set.")
        try:
            client = genai.Client(api_key=api_key)
        except Exception as e:
            raise InitializationError(f"Could not create Gemini client: {e}") from e
        return cls(client)

    def start_chat(self) -> ChatSession:
        config = types.GenerateContentConfig(system_instruction=SYSTEM_INSTRUCTION)
        try:
            chat = self.client.aio.chats.create(model=self.chat_model, config=config)
        except Exception as e:
            raise InitializationError(f"Could not start chat session: {e}") from e
        logger.info("Started chat session on %s", self.chat_model)
        return ChatSession(chat, self.chat_model)

    async def get_idea(self) -> InspirationIdea:
        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=INSPIRATION_SCHEMA,
        )
        try:
            response = await self.client.aio.models.generate_content(
                model=self.idea_model, contents=INSPIRATION_PROMPT, config=config,
            )
        except Exception as e:
            logger.exception("Error getting inspiration idea")
            raise IdeaError("Failed to generate a travel idea.") from e

        if not response.text:
            raise IdeaError("Model returned no idea text.")
        try:
            return InspirationIdea.model_validate_json(response.text)
        except ValidationError as e:
            logger.warning("Unusable inspiration idea: %s", response.text)
            raise IdeaError("Failed to generate a travel idea.") from e

    async def generate_image(self, prompt: str) -> str:
        try:
            if self.image_model.startswith("imagen"):
                data, mime = await self._generate_imagen(prompt)
            else:
                data, mime = await self._generate_inline_image(prompt)
            return to_jpeg_data_uri(data, mime)
        except ImageError as e:
            logger.error("Error generating inspiration image: %s", e)
            raise
        except Exception as e:
            logger.exception("Error generating inspiration image")
            raise ImageError("Failed to generate an image for the travel idea.") from e

    async def _generate_imagen(self, prompt):
        response = await self.client.aio.models.generate_images(
            model=self.image_model,
            prompt=prompt,
            config=types.GenerateImagesConfig(
                number_of_images=1,
                output_mime_type=IMAGE_MIME_TYPE,
                aspect_ratio=IMAGE_ASPECT_RATIO,
            ),
        )
        if not response.generated_images:
            raise ImageError("No image was generated.")
        image = response.generated_images[0].image
        return image.image_bytes, image.mime_type

    async def _generate_inline_image(self, prompt):
        config = types.GenerateContentConfig(
            response_modalities=[Modality.TEXT, Modality.IMAGE],
            image_config=types.ImageConfig(aspect_ratio=IMAGE_ASPECT_RATIO),
        )
        response = await self.client.aio.models.generate_content(
            model=self.image_model, contents=prompt, config=config,
        )
        if not response.candidates or not response.candidates[0].content:
            raise ImageError("No image was generated.")
        for part in response.candidates[0].content.parts or []:
            if part.inline_data and part.inline_data.data:
                return part.inline_data.data, part.inline_data.mime_type
        raise ImageError("No image was generated.")
