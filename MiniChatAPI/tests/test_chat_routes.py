from fastapi.testclient import TestClient

from MiniChatAPI.main import create_app


def test_get_chat_publishes_trimmed_message(test_client, recording_sink):
    resp = test_client.get('/chat', params={'message': '  hello  '})
    assert resp.status_code == 200
    assert resp.content == b''
    assert recording_sink.messages == ['hello']


def test_get_chat_ignores_blank_and_missing_message(test_client, recording_sink):
    assert test_client.get('/chat', params={'message': '   '}).status_code == 200
    assert test_client.get('/chat').status_code == 200
    assert recording_sink.messages == []


def test_post_chat_acknowledges_with_subscriber_count(test_client, recording_sink):
    resp = test_client.post('/chat', json={'message': ' hi there '})
    assert resp.status_code == 202
    assert resp.json() == {'accepted': True, 'delivered_to': 1}
    assert recording_sink.messages == ['hi there']


def test_post_chat_blank_message_is_accepted_but_not_sent(test_client, recording_sink):
    resp = test_client.post('/chat', json={'message': '\t'})
    assert resp.status_code == 202
    assert resp.json()['delivered_to'] == 0
    assert recording_sink.messages == []


def test_post_chat_requires_message(test_client):
    resp = test_client.post('/chat', json={})
    assert resp.status_code == 422


def test_publish_is_not_affected_by_failing_subscriber(test_client, hub, recording_sink, make_recording_sink):
    hub.registry.add(make_recording_sink(fail=True))

    resp = test_client.post('/chat', json={'message': 'still delivered'})
    assert resp.status_code == 202
    assert resp.json()['delivered_to'] == 1
    assert recording_sink.messages == ['still delivered']


def test_stream_stats_reports_subscribers(test_client, recording_sink):
    resp = test_client.get('/sse/stats')
    assert resp.status_code == 200
    assert resp.json() == {'subscribers': 1}


def test_apps_do_not_share_hubs():
    first, second = create_app(), create_app()
    assert first.state.hub is not second.state.hub


def test_shutdown_closes_hub(hub):
    app = create_app(hub=hub, heartbeat_interval=0)
    with TestClient(app):
        assert not hub.closed
    assert hub.closed
