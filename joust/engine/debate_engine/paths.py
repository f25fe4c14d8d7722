"""Collection paths for topics, debate rooms and messages."""

from joust.engine.database import DocumentRef


class StorePaths:
    """Builds namespaced collection paths and document references."""

    def __init__(self, app_id: str):
        self.root = f"artifacts/{app_id}/public/data"

    @property
    def topics(self) -> str:
        return f"{self.root}/topics"

    @property
    def debate_rooms(self) -> str:
        return f"{self.root}/debateRooms"

    def messages(self, room_id: str) -> str:
        return f"{self.debate_rooms}/{room_id}/messages"

    def topic(self, topic_id: str) -> DocumentRef:
        return DocumentRef(self.topics, topic_id)

    def debate_room(self, room_id: str) -> DocumentRef:
        return DocumentRef(self.debate_rooms, room_id)
