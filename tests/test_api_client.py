import httpx
import pytest

from chatsync.sync.auth import AuthClient
from chatsync.sync.credentials import CredentialStore, Identity
from chatsync.sync.errors import NetworkError, NotFoundOrForbidden, Unauthorized, ValidationFailed
from chatsync.sync.api_client import RemoteClient

from helpers import new_account, remote_client


async def _signed_in(client) -> Identity:
    email, username, password = new_account()
    return await AuthClient(client).register(email, username, password)


@pytest.mark.anyio
async def test_session_crud_through_client():
    async with remote_client() as client:
        identity = await _signed_in(client)
        assert client.credentials.identity == identity

        created = await client.create_session({'topic': 'Trip', 'memoryPrompt': '', 'maskConfig': '{"a": 1}'})
        assert created['topic'] == 'Trip'
        assert created['id'] in await client.list_session_ids()

        await client.update_session(created['id'], {'topic': 'Renamed'})
        await client.append_message({'sessionId': created['id'], 'role': 'user', 'content': 'hi'})

        detail = await client.get_session(created['id'])
        assert detail['topic'] == 'Renamed'
        assert detail['maskConfig'] == '{"a": 1}'
        assert [message['content'] for message in detail['messages']] == ['hi']

        assert await client.delete_session(created['id']) == {'status': 'ok'}
        assert created['id'] not in await client.list_session_ids()


@pytest.mark.anyio
async def test_missing_session_is_not_found():
    async with remote_client() as client:
        await _signed_in(client)
        with pytest.raises(NotFoundOrForbidden) as exc_info:
            await client.get_session('missing')
        assert exc_info.value.status_code == 404
        assert exc_info.value.message == 'Session not found'


@pytest.mark.anyio
async def test_validation_failure_carries_server_message():
    async with remote_client() as client:
        email, username, password = new_account()
        await client.register(email, username, password)
        with pytest.raises(ValidationFailed) as exc_info:
            await client.register(email, f"{username}x", password)
        assert exc_info.value.message == 'Email already registered'

        with pytest.raises(ValidationFailed) as exc_info:
            await client.register(f"x{email}", 'ab', password)
        assert exc_info.value.status_code == 422
        assert exc_info.value.message


@pytest.mark.anyio
async def test_unauthorized_clears_credentials_and_fires_hook_once():
    sent = []

    async def record(request: httpx.Request) -> None:
        sent.append(request.url.path)

    fired = []
    credentials = CredentialStore()
    credentials.set('expired-token', Identity(id='u1', email='a@b.com', username='alice'))

    async with remote_client(credentials, on_unauthorized=lambda: fired.append(True), event_hooks={'request': [record]}) as client:
        with pytest.raises(Unauthorized):
            await client.list_sessions()
        assert credentials.token is None
        assert not credentials.is_authenticated
        assert fired == [True]

        with pytest.raises(Unauthorized):
            await client.list_sessions()
        assert fired == [True]
        assert sent == ['/api/v1/sessions']


@pytest.mark.anyio
async def test_failed_login_does_not_fire_unauthorized_hook():
    fired = []
    async with remote_client(on_unauthorized=lambda: fired.append(True)) as client:
        with pytest.raises(Unauthorized) as exc_info:
            await client.login('missing@b.com', 'secret123')
        assert exc_info.value.message == 'Invalid email or password'
    assert fired == []


@pytest.mark.anyio
async def test_transport_failure_is_network_error():
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError('connection refused', request=request)

    credentials = CredentialStore()
    credentials.set('token', Identity(id='u1', email='a@b.com', username='alice'))
    async with httpx.AsyncClient(transport=httpx.MockTransport(refuse), base_url='http://remote') as http:
        client = RemoteClient(credentials, http=http)
        with pytest.raises(NetworkError):
            await client.list_sessions()
    assert credentials.is_authenticated


@pytest.mark.anyio
async def test_validate_keeps_credential_when_unreachable():
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError('connection refused', request=request)

    credentials = CredentialStore()
    credentials.set('token', Identity(id='u1', email='a@b.com', username='alice'))
    async with httpx.AsyncClient(transport=httpx.MockTransport(refuse), base_url='http://remote') as http:
        assert await AuthClient(RemoteClient(credentials, http=http)).validate() is True
    assert credentials.is_authenticated


@pytest.mark.anyio
async def test_validate_rejected_credential_signs_out():
    credentials = CredentialStore()
    credentials.set('bogus', Identity(id='u1', email='a@b.com', username='alice'))
    async with remote_client(credentials) as client:
        assert await AuthClient(client).validate() is False
    assert not credentials.is_authenticated


def test_credentials_persist_and_notify_on_transitions(tmp_path):
    path = tmp_path / 'credentials.json'
    credentials = CredentialStore(path)
    changes = []
    credentials.subscribe(changes.append)
    identity = Identity(id='u1', email='a@b.com', username='alice')

    credentials.set('t1', identity)
    credentials.set('t2', identity)
    assert CredentialStore(path).token == 't2'

    credentials.clear()
    credentials.clear()
    assert changes == [True, False]
    assert not path.exists()
    assert not CredentialStore(path).is_authenticated
