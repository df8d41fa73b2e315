from tgdesk.model import Chat, Message, Sender
from tgdesk.search import chat_stats, search_messages

CHATS = [Chat(id=-1, title="Yuk"), Chat(id=-2, title="Taksi")]
MESSAGES = [
    Message(id="1", chat_id=-1, sender=Sender(id=1, first_name="Aziz"), text="Salom", timestamp=1),
    Message(id="2", chat_id=-2, sender=Sender(id=2, first_name="Bek"), text="salom hammaga", timestamp=2),
    Message(id="3", chat_id=-2, sender=Sender(id=0, first_name="Dilnoza"), text="ok", timestamp=3, is_reply=True),
]


def test_search_matches_text_case_insensitively_newest_first() -> None:
    hits = search_messages(MESSAGES, CHATS, "SALOM")

    assert [hit.message.id for hit in hits] == ["2", "1"]
    assert hits[0].chat_title == "Taksi"


def test_search_matches_sender_name() -> None:
    assert [hit.message.id for hit in search_messages(MESSAGES, CHATS, "dilnoza")] == ["3"]


def test_blank_query_returns_nothing() -> None:
    assert search_messages(MESSAGES, CHATS, "  ") == []


def test_chat_stats_counts_directions() -> None:
    stats = chat_stats(CHATS, MESSAGES)

    assert [(s.title, s.inbound, s.outbound, s.total) for s in stats] == [
        ("Taksi", 1, 1, 2),
        ("Yuk", 1, 0, 1),
    ]
