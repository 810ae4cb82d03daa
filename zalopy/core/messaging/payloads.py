"""
Parameter builders of the message, file and friend APIs.

None values are left in place; they are dropped before signing.
"""
import json
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .models import Mention
from ..account import AccountCredential
from ..upload import UploadResult, new_client_id

FRIEND_REQUEST_SOURCE = 30
JXL_CONVERTIBLE = json.dumps({'convertible': 'jxl'}, separators=(',', ':'))


def target_fields(target_id: str, is_group: bool) -> Dict[str, Optional[str]]:
    return {
        'toid': None if is_group else target_id,
        'grid': target_id if is_group else None,
    }


def mention_info(mention: Optional[Mention], text: str) -> Optional[str]:
    if mention is None:
        return None
    return json.dumps([mention.to_dict(text)], separators=(',', ':'))


@dataclass(frozen=True)
class GalleryLayout:
    """Shared layout of a multi-file send so the files render as one gallery."""
    layout_id: str
    total: int

    @classmethod
    def create(cls, total: int, now_ms: Optional[int] = None) -> 'GalleryLayout':
        layout_id = now_ms if now_ms is not None else int(time.time() * 1000)
        return cls(str(layout_id), total)

    def fields(self, index: int) -> Dict[str, Any]:
        """Layout fields of the ``index``-th file (0-based); ids descend from ``total - 1``."""
        return {
            'group_layout_id': self.layout_id,
            'is_group_layout': 1,
            'id_in_group': self.total - 1 - index,
            'total_item_in_group': self.total,
        }


def build_text_params(
    credential: AccountCredential,
    target_id: str,
    is_group: bool,
    text: str,
    mention: Optional[Mention] = None,
    client_id: Optional[int] = None
) -> Dict[str, Any]:
    params = {
        'message': text,
        'client_id': client_id or new_client_id(),
        'imei': None if mention else credential.device_id,
        'ttl': 0,
        'visibility': 0 if is_group else None,
        'mention_info': mention_info(mention, text),
    }
    params.update(target_fields(target_id, is_group))
    return params


def build_photo_params(
    credential: AccountCredential,
    target_id: str,
    is_group: bool,
    upload: UploadResult,
    caption: Optional[str] = None,
    layout: Optional[Dict[str, Any]] = None,
    client_id: Optional[int] = None
) -> Dict[str, Any]:
    """Send-call parameters referencing an uploaded photo."""
    hd_url = upload.hd_url
    params = {
        'photo_id': upload.photo_id,
        'client_id': client_id or new_client_id(),
        'desc': caption or None,
        'width': upload.width,
        'height': upload.height,
        'raw_url': hd_url,
        'thumb_url': upload.thumb_url or hd_url,
        'ori_url': (upload.normal_url or hd_url) if is_group else None,
        'normal_url': None if is_group else (upload.normal_url or hd_url),
        'hd_url': hd_url,
        'hd_size': upload.hd_size,
        'zsource': -1,
        'jcp': JXL_CONVERTIBLE,
        'ttl': 0,
        'imei': credential.device_id,
    }
    params.update(target_fields(target_id, is_group))
    if layout:
        params.update(layout)
    return params


def build_file_params(
    credential: AccountCredential,
    target_id: str,
    is_group: bool,
    upload: UploadResult,
    client_id: Optional[int] = None
) -> Dict[str, Any]:
    """Send-call parameters referencing an uploaded file."""
    params = {
        'file_id': upload.file_id,
        'checksum': upload.checksum,
        'checksum_sha': '',
        'extension': upload.extension,
        'total_size': upload.total_size,
        'file_name': upload.filename,
        'client_id': client_id or new_client_id(),
        'f_type': 1,
        'file_count': 0,
        'fdata': {},
        'file_url': upload.file_url,
        'zsource': -1,
        'ttl': 0,
        'imei': credential.device_id,
    }
    params.update(target_fields(target_id, is_group))
    return params


def build_undo_params(
    credential: AccountCredential,
    target_id: str,
    is_group: bool,
    msg_id: str,
    cli_msg_id: str
) -> Dict[str, Any]:
    params = {
        'msgId': msg_id,
        'clientId': new_client_id(),
        'cliMsgIdUndo': cli_msg_id,
        'imei': credential.device_id if is_group else None,
        'visibility': 0 if is_group else None,
    }
    params.update(target_fields(target_id, is_group))
    return params


def build_friend_status_params(credential: AccountCredential, friend_id: str) -> Dict[str, Any]:
    return {'fid': friend_id, 'imei': credential.device_id}


def build_friend_request_params(
    credential: AccountCredential,
    friend_id: str,
    message: str = ''
) -> Dict[str, Any]:
    return {
        'toid': friend_id,
        'msg': message,
        'reqsrc': FRIEND_REQUEST_SOURCE,
        'imei': credential.device_id,
        'language': credential.language,
        'srcParams': json.dumps({'uidTo': friend_id}, separators=(',', ':')),
    }


def build_friend_accept_params(credential: AccountCredential, friend_id: str) -> Dict[str, Any]:
    return {'fid': friend_id, 'language': credential.language}
