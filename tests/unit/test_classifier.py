"""Tests for inbound payload classification."""
import pytest

from zalopy.core.realtime import EventKind, classify_payload, message_content, parse_typing_target

ACCOUNT = '1001'


class TestChatMessages:
    """Test suite for chat message classification."""

    def test_direct_message_from_peer(self):
        """Test a 1:1 message from another user."""
        payload = {'data': {'msgs': [{
            'uidFrom': '2002', 'idTo': ACCOUNT, 'msgType': 'webchat',
            'content': 'hello', 'dName': 'Peer', 'msgId': '77', 'ts': '1700000000000',
        }]}}

        events = classify_payload(ACCOUNT, payload)

        assert len(events) == 1
        event = events[0]
        assert event.kind == EventKind.CHAT_MESSAGE
        assert event.conversation_id == '2002'
        assert event.sender_id == '2002'
        assert event.timestamp == 1700000000000
        assert not event.is_group
        assert event.payload['content'] == 'hello'
        assert event.payload['display_name'] == 'Peer'
        assert event.payload['msg_id'] == '77'
        assert event.payload['message_type'] == 'webchat'
        assert not event.payload['is_self']

    def test_own_message_echo(self):
        """Test messages sent by this account from another device."""
        payload = {'data': {'messages': [{'uid_from': '0', 'id_to': '2002', 'content': 'mine'}]}}

        event = classify_payload(ACCOUNT, payload)[0]

        assert event.conversation_id == '2002'
        assert event.sender_id == ACCOUNT
        assert event.payload['is_self']

    def test_group_message(self):
        """Test group messages are keyed by group id."""
        payload = {'data': {'group_msgs': [
            {'uid_from': '2002', 'id_to': '9000', 'msg_type': 'chat.group_photo',
             'content': {'images': ['https://a/1.jpg', 'https://a/2.jpg']}},
        ]}}

        event = classify_payload(ACCOUNT, payload)[0]

        assert event.is_group
        assert event.conversation_id == '9000'
        assert event.payload['content'] == 'https://a/1.jpg,https://a/2.jpg'

    def test_batched_messages_keep_order(self):
        """Test several messages produce several events in order."""
        payload = {'data': {'msgs': [
            {'uidFrom': '1', 'content': 'a'},
            {'uidFrom': '2', 'content': 'b'},
        ]}}

        events = classify_payload(ACCOUNT, payload)

        assert [e.payload['content'] for e in events] == ['a', 'b']

    def test_object_content_is_json(self):
        """Test structured content is rendered as JSON."""
        assert message_content({'content': {'title': 'x'}}) == '{"title": "x"}'
        assert message_content({'content': None}) == ''


class TestOtherEvents:
    """Test suite for typing, friend and file events."""

    def test_typing_in_group(self):
        """Test group typing indicators."""
        payload = {'data': {'actions': [{'data': '"gid":"9000","uid":"2002"'}]}}

        event = classify_payload(ACCOUNT, payload)[0]

        assert event.kind == EventKind.TYPING
        assert event.is_group
        assert event.conversation_id == '9000'
        assert event.payload == {'gid': '9000', 'uid': '2002'}

    def test_typing_self_uid(self):
        """Test uid 0 maps to the receiving account."""
        payload = {'data': {'actions': [{'data': '{"uid":"0"}'}]}}

        event = classify_payload(ACCOUNT, payload)[0]

        assert event.sender_id == ACCOUNT
        assert not event.is_group

    @pytest.mark.parametrize('raw,expected', [
        ('', ('', '')),
        ({'gid': 'g', 'uid': 'u'}, ('g', 'u')),
        ('"gid":"g",broken,"uid":"u"', ('g', 'u')),
    ])
    def test_parse_typing_target(self, raw, expected):
        """Test typing data in its different encodings."""
        assert parse_typing_target(raw) == expected

    def test_file_ready(self):
        """Test file_done controls."""
        payload = {'data': {'controls': [{'content': {'act_type': 'file_done', 'file_id': 555}}]}}

        event = classify_payload(ACCOUNT, payload)[0]

        assert event.kind == EventKind.FILE_READY
        assert event.payload['file_id'] == '555'

    def test_friend_control(self):
        """Test friend actions carried as controls."""
        payload = {'data': {'controls': [{'content': {
            'act_type': 'fr', 'act': 'req_v2',
            'data': {'from_uid': '2002', 'to_uid': ACCOUNT, 'message': 'hi', 'value': '2002'},
        }}]}}

        event = classify_payload(ACCOUNT, payload)[0]

        assert event.kind == EventKind.FRIEND_ACTION
        assert event.payload['action'] == 'request'
        assert event.payload['from_uid'] == '2002'
        assert event.conversation_id == '2002'

    def test_friend_notice_message(self):
        """Test friend notices carried as chat messages."""
        payload = {'data': {'msgs': [{'uidFrom': '2002', 'content': {'action': 'msginfo.actionlist'}}]}}

        events = classify_payload(ACCOUNT, payload)

        assert [e.kind for e in events] == [EventKind.FRIEND_ACTION]
        assert events[0].payload['action'] == 'notice'

    @pytest.mark.parametrize('payload', [
        None,
        [],
        {'data': 'text'},
        {'data': {}},
        {'data': {'msgs': [{'uidFrom': '1'}]}},
        {'data': {'controls': [{'content': {'act_type': 'other'}}]}},
    ])
    def test_unclassified_payload_yields_nothing(self, payload):
        """Test unknown shapes are dropped."""
        assert classify_payload(ACCOUNT, payload) == []

    def test_envelope_to_dict(self):
        """Test envelope serialisation."""
        event = classify_payload(ACCOUNT, {'data': {'msgs': [{'uidFrom': '2', 'content': 'a'}]}})[0]

        data = event.to_dict()

        assert data['kind'] == 'chat_message'
        assert data['account_id'] == ACCOUNT
