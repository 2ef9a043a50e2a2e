"""Account domain exceptions."""

from __future__ import annotations


class InvalidCredentials(Exception):
    """Unknown username, wrong password, or not a staff account."""


class PasswordRejected(Exception):
    """The new password does not satisfy the password validators."""

    def __init__(self, messages: list[str]) -> None:
        self.messages = messages
        super().__init__(" ".join(messages))
