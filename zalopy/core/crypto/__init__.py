"""Parameter encryption, request signing and payload decryption."""
from .aes import AESStrategy, AESCBCStrategy, AESGCMStrategy, prepare_key
from .key_derivation import (
    KeyMaterial,
    create_zcid,
    create_encrypt_key,
    random_zcid_ext,
    derive_login_key_material,
)
from .params import (
    EncryptedParams,
    drop_nulls,
    sign_params,
    serialize_params,
    encrypt_payload,
    encrypt_request_params,
    decrypt_response,
    decrypt_response_json,
    build_login_params,
    make_url,
)
from .frames import (
    RealtimeFrame,
    split_frame,
    decrypt_websocket_frame,
    encode_websocket_frame,
    GEN_PLAIN,
    GEN_GZIP,
    GEN_GCM,
)

__all__ = [
    'AESStrategy',
    'AESCBCStrategy',
    'AESGCMStrategy',
    'prepare_key',
    'KeyMaterial',
    'create_zcid',
    'create_encrypt_key',
    'random_zcid_ext',
    'derive_login_key_material',
    'EncryptedParams',
    'drop_nulls',
    'sign_params',
    'serialize_params',
    'encrypt_payload',
    'encrypt_request_params',
    'decrypt_response',
    'decrypt_response_json',
    'build_login_params',
    'make_url',
    'RealtimeFrame',
    'split_frame',
    'decrypt_websocket_frame',
    'encode_websocket_frame',
    'GEN_PLAIN',
    'GEN_GZIP',
    'GEN_GCM',
]
