from __future__ import annotations

import logging
from typing import Any

from .config import MIN_PASSWORD_LENGTH
from .errors import ShellError
from .session import AuthSession

logger = logging.getLogger(__name__)

LOGIN = "login"
SIGNUP = "signup"
AUTH_MODES = (LOGIN, SIGNUP)

CONFIRM_EMAIL_MESSAGE = "Account created! Please check your email to confirm your account."


class AuthPrompt:
    def __init__(self, session: AuthSession) -> None:
        self._session = session
        self.mode = LOGIN
        self.email = ""
        self.password = ""
        self.confirm_password = ""
        self.is_loading = False
        self.error: str | None = None
        self.success_message: str | None = None

    def _reset(self) -> None:
        self.email = ""
        self.password = ""
        self.confirm_password = ""
        self.error = None
        self.success_message = None

    def switch_mode(self, mode: str) -> None:
        if mode not in AUTH_MODES:
            raise ValueError(f"Unknown auth mode '{mode}'")
        self.mode = mode
        self._reset()

    def update(
        self,
        email: str | None = None,
        password: str | None = None,
        confirm_password: str | None = None,
    ) -> None:
        if self.is_loading:
            raise ValueError("Authentication already in progress")
        if email is not None:
            self.email = email
        if password is not None:
            self.password = password
        if confirm_password is not None:
            self.confirm_password = confirm_password

    @property
    def can_submit(self) -> bool:
        return not self.is_loading and self.success_message is None

    def _validate(self) -> str | None:
        if not self.email or not self.password:
            return "Please fill in all fields"
        if self.mode == SIGNUP and self.password != self.confirm_password:
            return "Passwords do not match"
        if len(self.password) < MIN_PASSWORD_LENGTH:
            return f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        return None

    async def submit(self) -> bool:
        """Return True once the user holds a session."""
        if not self.can_submit:
            return False
        self.error = None
        self.success_message = None
        problem = self._validate()
        if problem is not None:
            self.error = problem
            return False

        self.is_loading = True
        try:
            if self.mode == LOGIN:
                await self._session.sign_in(self.email, self.password)
                return True
            result = await self._session.sign_up(self.email, self.password)
            if result.confirmation_pending:
                self.success_message = CONFIRM_EMAIL_MESSAGE
                return False
            return True
        except ShellError as exc:
            logger.warning("Authentication failed (%s)", self.mode)
            self.error = str(exc) or "An error occurred"
            return False
        finally:
            self.is_loading = False

    def view(self) -> dict[str, Any]:
        login = self.mode == LOGIN
        if self.is_loading:
            submit_label = "Please wait..."
        else:
            submit_label = "Sign In" if login else "Create Account"
        return {
            "mode": self.mode,
            "title": "Welcome Back" if login else "Create Account",
            "subtitle": "Sign in to access your saved games" if login else "Sign up to save your progress",
            "email": self.email,
            "show_confirm_password": not login,
            "is_loading": self.is_loading,
            "error": self.error,
            "success_message": self.success_message,
            "submit_label": submit_label,
            "can_submit": self.can_submit,
        }
