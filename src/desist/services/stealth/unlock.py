"""
Unlock Matching

SECURITY: The secret is compared as a whole token in constant time.
Prefixes, suffixes and supersets of the secret never match.
"""

import hmac
import string
from typing import Optional


KEYPAD_DIGITS = frozenset(string.digits)


def matches_secret(candidate: str, secret: str) -> bool:
    """
    Exact, constant-time comparison of a full token against the secret.

    An empty secret never matches anything.
    """
    if not secret:
        return False
    return hmac.compare_digest(candidate.encode("utf-8"), secret.encode("utf-8"))


class UnlockKeypad:
    """
    Digit accumulator behind the disguise keypad.

    Digits append to the buffer, the clear key empties it, the submit
    key hands the buffer over as a complete token. Any other key (an
    operator on the calculator disguise) starts a new operand. Input
    longer than max_length is never submitted.

    Usage:
        keypad = UnlockKeypad()
        for key in "5555=":
            token = keypad.press(key)
        # token == "5555"
    """

    def __init__(self, max_length: int = 16, submit_key: str = "=", clear_key: str = "C") -> None:
        self._max_length = max_length
        self._submit_key = submit_key
        self._clear_key = clear_key
        self._buffer: list[str] = []
        self._overflowed = False

    @property
    def length(self) -> int:
        return len(self._buffer)

    @property
    def max_length(self) -> int:
        return self._max_length

    @property
    def overflowed(self) -> bool:
        return self._overflowed

    def can_type(self, secret: str) -> bool:
        """True if the secret can be entered on this keypad."""
        return 0 < len(secret) <= self._max_length and all(ch in KEYPAD_DIGITS for ch in secret)

    def press(self, key: str) -> Optional[str]:
        """
        Register one key press.

        Returns:
            The submitted token when the submit key is pressed, else None.
            An input longer than the cap submits nothing.
        """
        if key == self._submit_key:
            token = None if self._overflowed else "".join(self._buffer)
            self.clear()
            return token

        if key in KEYPAD_DIGITS:
            if len(self._buffer) < self._max_length:
                self._buffer.append(key)
            else:
                self._overflowed = True
            return None

        self.clear()
        return None

    def clear(self) -> None:
        self._buffer.clear()
        self._overflowed = False
