from tgdesk.logging import redact_text, redact_token_processor


def test_redacts_token_in_api_url() -> None:
    url = "https://api.telegram.org/bot123456:ABCdef_ghi-JKL/getUpdates"

    assert redact_text(url) == "https://api.telegram.org/bot[REDACTED]/getUpdates"


def test_redacts_bare_token() -> None:
    assert redact_text("token 123456:ABCdefGHIjkl") == "token [REDACTED_TOKEN]"


def test_processor_only_touches_strings() -> None:
    event = {
        "event": "telegram.network_error",
        "url": "https://api.telegram.org/bot1:secretsecret/sendMessage",
        "chat_id": -100,
    }

    result = redact_token_processor(None, "error", event)

    assert result["url"] == "https://api.telegram.org/bot[REDACTED]/sendMessage"
    assert result["chat_id"] == -100
    assert result["event"] == "telegram.network_error"
