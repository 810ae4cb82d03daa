"""Fixed endpoints of the remote platform."""

# Login (id.zalo.me)
LOGIN_PAGE = 'https://id.zalo.me/account?continue=https%3A%2F%2Fchat.zalo.me%2F'
LOGIN_INFO = 'https://id.zalo.me/account/logininfo'
VERIFY_CLIENT = 'https://id.zalo.me/account/verify-client'
QR_GENERATE = 'https://id.zalo.me/account/authen/qr/generate'
QR_WAITING_SCAN = 'https://id.zalo.me/account/authen/qr/waiting-scan'
QR_WAITING_CONFIRM = 'https://id.zalo.me/account/authen/qr/waiting-confirm'
CHECK_SESSION = 'https://id.zalo.me/account/checksession?continue=https%3A%2F%2Fchat.zalo.me%2Findex.html'
USER_INFO = 'https://jr.chat.zalo.me/jr/userinfo'
GET_LOGIN_INFO = 'https://wpa.chat.zalo.me/api/login/getLoginInfo'

LOGIN_ORIGIN = 'https://id.zalo.me'
LOGIN_CONTINUE = 'https://zalo.me/pc'
CHAT_CONTINUE = 'https://chat.zalo.me/'

# Versioned login bundle referenced by the login page
LOGIN_VERSION_PATTERN = r'https://stc-zlogin\.zdn\.vn/main-([\d.]+)\.js'

# Messages
SEND_MESSAGE = 'https://tt-chat2-wpa.chat.zalo.me/api/message/sms'
SEND_GROUP_MESSAGE = 'https://tt-group-wpa.chat.zalo.me/api/group/sendmsg'
SEND_GROUP_MENTION = 'https://tt-group-wpa.chat.zalo.me/api/group/mention'
UNDO_MESSAGE = 'https://tt-chat2-wpa.chat.zalo.me/api/message/undo'
UNDO_GROUP_MESSAGE = 'https://tt-group-wpa.chat.zalo.me/api/group/undomsg'

# Files
FILE_USER_BASE = 'https://tt-files-wpa.chat.zalo.me/api/message/'
FILE_GROUP_BASE = 'https://tt-files-wpa.chat.zalo.me/api/group/'
PHOTO_UPLOAD = 'photo_original/upload'
PHOTO_SEND = 'photo_original/send'
FILE_UPLOAD = 'asyncfile/upload'
FILE_SEND = 'asyncfile/msg'

# Friends
FRIEND_BASE = 'https://tt-friend-wpa.chat.zalo.me/api/friend/'
FRIEND_SEND_REQUEST = FRIEND_BASE + 'sendreq'
FRIEND_STATUS = FRIEND_BASE + 'reqstatus'
FRIEND_ACCEPT = FRIEND_BASE + 'accept'

# Real-time
WEBSOCKET_URL = 'wss://ws2-msg.chat.zalo.me/'
WEBSOCKET_ORIGIN = 'https://chat.zalo.me'


def file_base(is_group: bool) -> str:
    return FILE_GROUP_BASE if is_group else FILE_USER_BASE
