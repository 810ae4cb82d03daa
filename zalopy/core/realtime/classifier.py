"""
Inbound payload classification.

Decoded real-time payloads are sorted by shape into chat messages, typing
indicators, friend-relationship actions and file-ready notifications.
A payload that matches none of them yields no events.
"""
import json
import re
import time
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .models import EventKind, InboundEventEnvelope
from ..logging import get_logger

logger = get_logger('zalopy.realtime')

SELF_UID = '0'
FRIEND_ACTION_MARKER = 'msginfo.actionlist'

FRIEND_ACTIONS = {
    'add': 'accept',
    'remove': 'remove',
    'undo_req': 'undo',
    'req': 'request',
    'req_v2': 'request',
}

MESSAGE_KEYS = {
    'uidFrom': 'uid_from',
    'idTo': 'id_to',
    'msgType': 'msg_type',
    'msgId': 'msg_id',
    'cliMsgId': 'cli_msg_id',
    'dName': 'display_name',
}

_GID_RE = re.compile(r'"gid":"([^"]*)"')
_UID_RE = re.compile(r'"uid":"([^"]*)"')


def _now_ms() -> int:
    return int(time.time() * 1000)


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _controls(data: Mapping[str, Any]) -> List[Dict[str, Any]]:
    controls = data.get('controls')
    return [c for c in controls if isinstance(c, dict)] if isinstance(controls, list) else []


def _control_content(control: Mapping[str, Any]) -> Dict[str, Any]:
    content = control.get('content')
    return content if isinstance(content, dict) else {}


def normalize_message(msg: Mapping[str, Any]) -> Dict[str, Any]:
    """Map camelCase message keys onto their snake_case names."""
    normalized = dict(msg)
    for camel, snake in MESSAGE_KEYS.items():
        if camel in normalized and snake not in normalized:
            normalized[snake] = normalized[camel]
    return normalized


def _messages(data: Mapping[str, Any]) -> Tuple[List[Dict[str, Any]], bool]:
    """Return (messages, is_group)."""
    group_msgs = data.get('group_msgs') or data.get('groupMsgs')
    if isinstance(group_msgs, list) and group_msgs:
        return [normalize_message(m) for m in group_msgs if isinstance(m, dict)], True
    messages = data.get('messages') or data.get('msgs')
    if isinstance(messages, list):
        return [normalize_message(m) for m in messages if isinstance(m, dict)], False
    return [], False


def message_content(msg: Mapping[str, Any]) -> str:
    """Render message content as text. Group photo albums become comma-joined URLs."""
    content = msg.get('content')
    if isinstance(content, dict):
        if msg.get('msg_type') == 'chat.group_photo' and content.get('images'):
            return ','.join(str(i) for i in content['images'])
        return json.dumps(content, ensure_ascii=False)
    return '' if content is None else str(content)


def parse_typing_target(raw: Any) -> Tuple[str, str]:
    """Extract ``(gid, uid)`` from a typing action's data string."""
    if isinstance(raw, dict):
        return str(raw.get('gid') or ''), str(raw.get('uid') or '')
    if not raw:
        return '', ''

    text = str(raw)
    try:
        data = json.loads(text if text.startswith('{') else '{' + text + '}')
        return str(data.get('gid') or ''), str(data.get('uid') or '')
    except (json.JSONDecodeError, AttributeError):
        gid = _GID_RE.search(text)
        uid = _UID_RE.search(text)
        return (gid.group(1) if gid else ''), (uid.group(1) if uid else '')


def _file_ready(account_id: str, content: Mapping[str, Any]) -> InboundEventEnvelope:
    data = content.get('data') if isinstance(content.get('data'), dict) else {}
    return InboundEventEnvelope(
        kind=EventKind.FILE_READY,
        account_id=account_id,
        conversation_id=str(data.get('toid') or data.get('grid') or account_id),
        sender_id=account_id,
        timestamp=_now_ms(),
        payload={
            'file_id': str(content.get('file_id', '')),
            'file_url': content.get('file_url') or data.get('url') or '',
        },
    )


def _friend_from_control(account_id: str, content: Mapping[str, Any]) -> InboundEventEnvelope:
    act = content.get('act') or ''
    data = content.get('data') if isinstance(content.get('data'), dict) else {}
    from_uid = str(data.get('from_uid') or '')
    return InboundEventEnvelope(
        kind=EventKind.FRIEND_ACTION,
        account_id=account_id,
        conversation_id=str(data.get('value') or account_id),
        sender_id=from_uid or account_id,
        timestamp=_now_ms(),
        payload={
            'action': FRIEND_ACTIONS.get(act, act),
            'from_uid': from_uid,
            'to_uid': str(data.get('to_uid') or ''),
            'message': data.get('message') or '',
        },
    )


def _friend_from_message(account_id: str, msg: Mapping[str, Any]) -> InboundEventEnvelope:
    uid_from = str(msg.get('uid_from', ''))
    is_self = uid_from == SELF_UID
    return InboundEventEnvelope(
        kind=EventKind.FRIEND_ACTION,
        account_id=account_id,
        conversation_id=str(msg.get('id_to') if is_self else uid_from),
        sender_id=account_id if is_self else uid_from,
        timestamp=_as_int(msg.get('ts'), _now_ms()),
        payload={
            'action': 'notice',
            'from_uid': account_id if is_self else uid_from,
            'to_uid': str(msg.get('id_to') or ''),
            'message': message_content(msg),
        },
    )


def _chat_message(account_id: str, msg: Mapping[str, Any], is_group: bool) -> InboundEventEnvelope:
    uid_from = str(msg.get('uid_from', ''))
    is_self = uid_from == SELF_UID
    now = _now_ms()
    if is_group:
        conversation_id = str(msg.get('id_to') or uid_from)
    else:
        conversation_id = str(msg.get('id_to') if is_self else uid_from)
    return InboundEventEnvelope(
        kind=EventKind.CHAT_MESSAGE,
        account_id=account_id,
        conversation_id=conversation_id,
        sender_id=account_id if is_self else uid_from,
        timestamp=_as_int(msg.get('ts') or msg.get('timestamp'), now),
        is_group=is_group,
        payload={
            'content': message_content(msg),
            'message_type': str(msg.get('msg_type') or 'unknown').lower(),
            'display_name': msg.get('display_name') or '',
            'msg_id': str(msg.get('msg_id') or ''),
            'cli_msg_id': str(msg.get('cli_msg_id') or now),
            'is_self': is_self,
        },
    )


def _typing(account_id: str, action: Mapping[str, Any]) -> InboundEventEnvelope:
    gid, uid = parse_typing_target(action.get('data'))
    uid = account_id if uid == SELF_UID else uid
    return InboundEventEnvelope(
        kind=EventKind.TYPING,
        account_id=account_id,
        conversation_id=gid or uid,
        sender_id=uid,
        timestamp=_now_ms(),
        is_group=bool(gid),
        payload={'gid': gid, 'uid': uid},
    )


def classify_payload(account_id: str, payload: Any) -> List[InboundEventEnvelope]:
    """
    Classify a decoded real-time payload.

    Checked in order: control notifications (file ready, friend action),
    friend notices carried as messages, chat messages, typing actions.

    Args:
        account_id: Remote user id of the receiving account
        payload: Decoded frame payload (``{"data": {...}}`` or the inner object)

    Returns:
        Zero or more events, in payload order
    """
    if not isinstance(payload, dict):
        return []

    data = payload.get('data', payload)
    if not isinstance(data, dict):
        return []

    controls = _controls(data)
    if controls:
        content = _control_content(controls[0])
        if content.get('act_type') == 'file_done':
            return [_file_ready(account_id, content)]

        friend = [
            _friend_from_control(account_id, _control_content(c))
            for c in controls if _control_content(c).get('act_type') == 'fr'
        ]
        if friend:
            return friend

    messages, is_group = _messages(data)
    if messages:
        if any(FRIEND_ACTION_MARKER in str(m.get('content', '')) for m in messages):
            return [
                _friend_from_message(account_id, m) for m in messages
                if FRIEND_ACTION_MARKER in str(m.get('content', ''))
            ]

        chat = [
            _chat_message(account_id, m, is_group)
            for m in messages if m.get('msg_type') or m.get('content')
        ]
        if chat:
            return chat

    actions = data.get('actions')
    if isinstance(actions, list) and actions and isinstance(actions[0], dict):
        return [_typing(account_id, actions[0])]

    logger.debug(f"Unclassified payload for {account_id}: keys={sorted(data)}")
    return []
