from therapist_voice.services.schemas import AudioClip, ChatRequest, Credentials, Message, VoiceModel
from therapist_voice.state.app_state import ConversationState


def test_thinking_placeholder_only_while_processing():
    messages = (Message("user", "hello"),)
    idle = ConversationState(messages=messages)
    busy = ConversationState(messages=messages, is_processing=True)

    assert idle.display_messages == messages
    assert len(busy.display_messages) == 2
    assert busy.display_messages[-1].is_thinking
    assert busy.messages == messages


def test_visible_content_follows_typing_reveal():
    state = ConversationState(
        messages=(Message("user", "hi"), Message("assistant", "Run away.")),
        typing_index=1,
        currently_typing="Run",
    )
    assert state.visible_content(0) == "hi"
    assert state.visible_content(1) == "Run"


def test_chat_request_payload_uses_proxy_field_names():
    request = ChatRequest(
        message="hello",
        api_key="k",
        previous_messages=[Message("user", "before"), Message("assistant", "reply")],
        system_prompt="be bad",
    )
    assert request.to_payload() == {
        "message": "hello",
        "apiKey": "k",
        "previousMessages": [
            {"role": "user", "content": "before"},
            {"role": "assistant", "content": "reply"},
        ],
        "systemPrompt": "be bad",
    }
    assert "systemPrompt" not in ChatRequest(message="m", api_key="k").to_payload()


def test_voice_and_credentials_helpers():
    voice = VoiceModel.from_payload({"id": "luna", "name": "Luna (Female US)", "model": "aura-luna-en"})
    assert voice.model == "aura-luna-en"
    assert VoiceModel.from_payload({"id": "zeus"}).name == "zeus"

    assert not Credentials(deepgram_api_key="d").complete
    assert Credentials("d", "c").complete


def test_clip_duration_unknown_without_pcm():
    assert AudioClip(pcm=b"", sample_rate=16000).duration is None
    assert AudioClip(pcm=b"\x00" * 32000, sample_rate=16000).duration == 1.0
