from datetime import datetime, timezone

from chatsync.models.enums import ChatRole
from chatsync.sync import transcoder
from chatsync.sync.local_store import LocalMessage, LocalSession, SessionStat


def test_round_trip_preserves_topic_prompt_and_mask():
    session = LocalSession(topic='T', memory_prompt='M', mask={'theme': 'dark'})
    restored = transcoder.to_local(transcoder.to_remote(session))
    assert restored.topic == 'T'
    assert restored.memory_prompt == 'M'
    assert restored.mask == {'theme': 'dark'}


def test_malformed_mask_degrades_to_empty():
    restored = transcoder.to_local({'id': 's1', 'topic': 't', 'maskConfig': '{not json'})
    assert restored.mask == {}
    assert transcoder.to_local({'id': 's1', 'maskConfig': '[1, 2]'}).mask == {}
    assert transcoder.to_local({'id': 's1', 'maskConfig': None}).mask == {}


def test_to_local_maps_fields_and_zeroes_stat():
    remote = {
        'id': 's1',
        'topic': 'Trip',
        'memoryPrompt': 'summary',
        'lastSummarizeIndex': 4,
        'clearContextIndex': 2,
        'maskConfig': '{"model": "gpt"}',
        'lastUpdate': '2024-05-01T12:00:00Z',
        'messages': [
            {'id': 'm1', 'role': 'user', 'content': 'hi', 'date': 'd1'},
            {'id': 'm2', 'role': 'assistant', 'content': 'yo', 'date': 'd2', 'tools': {'name': 'x'}},
        ],
    }
    local = transcoder.to_local(remote)
    assert local.id == 's1'
    assert local.last_summarize_index == 4
    assert local.clear_context_index == 2
    assert local.mask == {'model': 'gpt'}
    assert local.last_update == int(datetime(2024, 5, 1, 12, tzinfo=timezone.utc).timestamp() * 1000)
    assert local.stat == SessionStat()
    assert [message.id for message in local.messages] == ['m1', 'm2']
    assert local.messages[1].role == ChatRole.ASSISTANT
    assert local.messages[1].tools == [{'name': 'x'}]


def test_timestamp_normalization():
    assert transcoder.to_epoch_ms('2024-05-01T12:00:00') == transcoder.to_epoch_ms('2024-05-01T12:00:00+00:00')
    assert transcoder.to_epoch_ms(1714564800000) == 1714564800000
    assert transcoder.to_epoch_ms('yesterday') == 0
    assert transcoder.to_epoch_ms(None) == 0


def test_to_remote_field_subsets():
    session = LocalSession(
        topic='T',
        memory_prompt='M',
        mask={'a': 1},
        stat=SessionStat(token_count=1, word_count=2, char_count=3),
        last_summarize_index=5,
    )
    assert set(transcoder.to_remote(session, 'create')) == {'topic', 'memoryPrompt', 'maskConfig'}

    update = transcoder.to_remote(session, 'update')
    assert set(update) == {'topic', 'memoryPrompt', 'lastSummarizeIndex', 'maskConfig', 'stat'}
    assert update['stat'] == {'tokenCount': 1, 'wordCount': 2, 'charCount': 3}
    assert update['maskConfig'] == '{"a": 1}'

    partial = transcoder.to_remote(session, 'update', fields=('topic', 'maskConfig'))
    assert partial == {'topic': 'T', 'maskConfig': '{"a": 1}'}


def test_message_to_remote():
    message = LocalMessage(role=ChatRole.USER, content='hi', date='d', model='m')
    payload = transcoder.message_to_remote('s1', message)
    assert payload == {
        'sessionId': 's1',
        'role': 'user',
        'content': 'hi',
        'date': 'd',
        'isMcpResponse': False,
        'model': 'm',
    }


def test_unknown_role_falls_back_to_user():
    message = transcoder.message_to_local({'id': 'm', 'role': 'tool', 'content': {'x': 1}})
    assert message.role == ChatRole.USER
    assert message.content == '{"x": 1}'


def test_non_numeric_indexes_fall_back():
    local = transcoder.to_local({'id': 's1', 'lastSummarizeIndex': 'abc', 'clearContextIndex': 'x'})
    assert local.last_summarize_index == 0
    assert local.clear_context_index is None
    assert transcoder.to_local({'id': 's1', 'lastSummarizeIndex': '3'}).last_summarize_index == 3
