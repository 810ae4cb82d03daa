"""
Cookie jar for remote platform sessions.

One internal representation is used everywhere: an ordered map of
cookie name to :class:`Cookie` (value plus optional domain/path/expiry).
The jar is serialised to a ``Cookie`` header for requests and rewritten
from ``Set-Cookie`` headers after every response.
"""
import time
from collections import OrderedDict
from dataclasses import dataclass, asdict
from email.utils import parsedate_to_datetime
from http.cookies import Morsel
from typing import Any, Dict, Iterator, List, Mapping, Optional


@dataclass
class Cookie:
    """A single cookie."""
    name: str
    value: str
    domain: str = ''
    path: str = '/'
    expires: Optional[float] = None  # epoch seconds
    secure: bool = False

    def is_expired(self, now: Optional[float] = None) -> bool:
        if self.expires is None:
            return False
        return self.expires <= (now if now is not None else time.time())

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Cookie':
        expires = data.get('expires')
        return cls(
            name=data['name'],
            value=str(data.get('value', '')),
            domain=data.get('domain') or '',
            path=data.get('path') or '/',
            expires=float(expires) if expires not in (None, '') else None,
            secure=bool(data.get('secure', False)),
        )


def _morsel_expiry(morsel: Morsel, now: float) -> Optional[float]:
    max_age = morsel.get('max-age')
    if max_age:
        try:
            return now + int(max_age)
        except ValueError:
            pass

    expires = morsel.get('expires')
    if expires:
        try:
            return parsedate_to_datetime(expires).timestamp()
        except (TypeError, ValueError):
            return None
    return None


class CookieJar:
    """
    Ordered cookie map.

    Example:
        >>> jar = CookieJar.from_header("zpsid=abc; zpw_sek=def")
        >>> jar.get('zpsid')
        'abc'
        >>> jar.to_header()
        'zpsid=abc; zpw_sek=def'
    """

    def __init__(self, cookies: Optional[List[Cookie]] = None):
        self._cookies: 'OrderedDict[str, Cookie]' = OrderedDict()
        for cookie in cookies or []:
            self._cookies[cookie.name] = cookie

    def __len__(self) -> int:
        return len(self._cookies)

    def __bool__(self) -> bool:
        return bool(self._cookies)

    def __contains__(self, name: str) -> bool:
        return name in self._cookies

    def __iter__(self) -> Iterator[Cookie]:
        return iter(list(self._cookies.values()))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CookieJar):
            return NotImplemented
        return list(self._cookies.values()) == list(other._cookies.values())

    def __repr__(self) -> str:
        return f"CookieJar({list(self._cookies)})"

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        cookie = self._cookies.get(name)
        return cookie.value if cookie else default

    def set(
        self,
        name: str,
        value: str,
        domain: str = '',
        path: str = '/',
        expires: Optional[float] = None,
        secure: bool = False
    ) -> None:
        """Add or replace a cookie. Replacing keeps its position."""
        self._cookies[name] = Cookie(name, value, domain, path, expires, secure)

    def remove(self, name: str) -> None:
        self._cookies.pop(name, None)

    def clear(self) -> None:
        self._cookies.clear()

    def copy(self) -> 'CookieJar':
        return CookieJar([Cookie(**asdict(c)) for c in self._cookies.values()])

    def to_header(self, now: Optional[float] = None) -> str:
        """Serialise unexpired cookies as a ``Cookie`` header value."""
        return '; '.join(
            f"{c.name}={c.value}" for c in self._cookies.values() if not c.is_expired(now)
        )

    @classmethod
    def from_header(cls, header: str, domain: str = '') -> 'CookieJar':
        """Parse a ``Cookie`` header value (``a=1; b=2``)."""
        jar = cls()
        for part in (header or '').split(';'):
            name, sep, value = part.strip().partition('=')
            if name and sep:
                jar.set(name, value, domain=domain)
        return jar

    def update_from_response(
        self,
        cookies: Mapping[str, Morsel],
        default_domain: str = '',
        now: Optional[float] = None
    ) -> int:
        """
        Apply ``Set-Cookie`` headers.

        Args:
            cookies: Parsed ``Set-Cookie`` headers (e.g. aiohttp ``response.cookies``)
            default_domain: Domain recorded for cookies that do not set one
            now: Current time in epoch seconds

        Returns:
            Number of cookies added, replaced or removed
        """
        now = now if now is not None else time.time()
        changed = 0

        for name, morsel in cookies.items():
            expires = _morsel_expiry(morsel, now)
            if expires is not None and expires <= now:
                if name in self._cookies:
                    self.remove(name)
                    changed += 1
                continue

            self.set(
                name,
                morsel.value,
                domain=morsel.get('domain') or default_domain,
                path=morsel.get('path') or '/',
                expires=expires,
                secure=bool(morsel.get('secure')),
            )
            changed += 1

        return changed

    def to_list(self) -> List[Dict[str, Any]]:
        return [c.to_dict() for c in self._cookies.values()]

    @classmethod
    def from_list(cls, items: List[Mapping[str, Any]]) -> 'CookieJar':
        return cls([Cookie.from_dict(item) for item in items or []])
