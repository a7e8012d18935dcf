import pytest

from groupmind.bot.mention import MentionDetector


@pytest.fixture
def detector():
    return MentionDetector(bot_name="Nova", bot_username="nova_pm_bot")


@pytest.mark.parametrize("text", [
    "@Nova kapan deadline?",
    "@nova_pm_bot cek budget",
    "hey nova, permit gimana",
    "Nova tolong rangkum",
    "menurut kamu gimana nova?",
])
def test_detects_mentions(detector, text):
    assert detector.detect_mention(text)


@pytest.mark.parametrize("text", [
    "",
    "supernova project kickoff",
    "novaria sudah bayar",
    "ok siap",
])
def test_ignores_non_mentions(detector, text):
    assert not detector.detect_mention(text)


def test_private_chat_and_reply_count_as_addressed(detector):
    assert detector.is_addressed("ok", is_private=True)
    assert detector.is_addressed("ok", replies_to_bot=True)
    assert not detector.is_addressed("ok")
