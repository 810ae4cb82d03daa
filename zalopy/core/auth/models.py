"""
Login flow states and results.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from ..account import AccountCredential


class LoginState(str, Enum):
    """States of the QR login handshake."""
    LOADING_PAGE = 'LoadingPage'
    LOGIN_INFO_FETCHED = 'LoginInfoFetched'
    CLIENT_VERIFIED = 'ClientVerified'
    QR_GENERATED = 'QRGenerated'
    AWAITING_SCAN = 'AwaitingScan'
    AWAITING_CONFIRM = 'AwaitingConfirm'
    SESSION_CHECKED = 'SessionChecked'
    USER_INFO_FETCHED = 'UserInfoFetched'
    COMPLETED = 'Completed'
    # terminal failures
    DECLINED = 'Declined'
    EXPIRED = 'Expired'
    ACCOUNT_EXISTS = 'AccountExists'
    SERVER_ERROR = 'ServerError'

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES

    @property
    def is_failure(self) -> bool:
        return self in FAILURE_STATES


FAILURE_STATES = frozenset({
    LoginState.DECLINED,
    LoginState.EXPIRED,
    LoginState.ACCOUNT_EXISTS,
    LoginState.SERVER_ERROR,
})
TERMINAL_STATES = FAILURE_STATES | {LoginState.COMPLETED}


@dataclass
class LoginEvent:
    """Payload handed to state observers on every transition."""
    state: LoginState
    message: str = ''
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {'state': self.state.value, 'message': self.message, 'data': self.data}


@dataclass
class LoginResult:
    """Outcome of ``start_login`` or ``poll_login``."""
    state: LoginState
    message: str = ''
    data: Dict[str, Any] = field(default_factory=dict)
    credential: Optional[AccountCredential] = None
    error_kind: Optional[str] = None

    @property
    def success(self) -> bool:
        return not self.state.is_failure

    @property
    def qr_session_id(self) -> Optional[str]:
        return self.data.get('qr_session_id')

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'success': self.success,
            'state': self.state.value,
            'message': self.message,
            'data': self.data,
        }
        if self.error_kind:
            result['error_kind'] = self.error_kind
        return result
