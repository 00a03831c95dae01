from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

Role = Literal["user", "model"]


class Message(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: Optional[int] = None
    role: Role
    text: str
    image_url: Optional[str] = None
    is_loading_image: Optional[bool] = None


class MessageStore:
    """Append-only message log with an id index.

    Every appended message gets a fresh id. A message can be updated in
    place only while its id is held; ``release`` ends that window.
    """

    def __init__(self):
        self._order = []
        self._by_id = {}
        self._held = set()
        self._next_id = 1

    def __len__(self):
        return len(self._order)

    def __iter__(self):
        return (self._by_id[mid] for mid in self._order)

    def messages(self):
        return list(self)

    def get(self, message_id: int) -> Message:
        return self._by_id[message_id]

    def append(self, *messages: Message) -> list:
        stored = []
        for message in messages:
            message = message.model_copy(update={"id": self._next_id})
            self._next_id += 1
            self._order.append(message.id)
            self._by_id[message.id] = message
            stored.append(message)
        return stored

    def hold(self, message_id: int):
        if message_id not in self._by_id:
            raise KeyError(message_id)
        if message_id in self._held:
            raise ValueError(f"message {message_id} is already held for update")
        self._held.add(message_id)

    def is_held(self, message_id: int) -> bool:
        return message_id in self._held

    def update(self, message_id: int, **changes) -> Message:
        if message_id not in self._held:
            raise KeyError(message_id)
        message = self._by_id[message_id].model_copy(update=changes)
        self._by_id[message_id] = message
        return message

    def release(self, message_id: int):
        self._held.discard(message_id)
