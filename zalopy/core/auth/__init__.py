"""QR code login handshake."""
from .models import LoginState, LoginEvent, LoginResult, TERMINAL_STATES, FAILURE_STATES
from .login_flow import LoginFlow, normalize_phone

__all__ = [
    'LoginState',
    'LoginEvent',
    'LoginResult',
    'TERMINAL_STATES',
    'FAILURE_STATES',
    'LoginFlow',
    'normalize_phone',
]
