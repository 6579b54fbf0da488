"""Example user flows built on ``Action`` and ``Service``.

These show the intended shape of concrete actions: permission gate, input
validation, then business logic inside a repository transaction.
"""

from __future__ import annotations

from contextlib import nullcontext
import hashlib
import hmac
import secrets
from typing import TYPE_CHECKING, Any, ClassVar

from actionlayer.action import Action
from actionlayer.errors import ValidationFailure
from actionlayer.identity import capability_names
from actionlayer.service import Service

if TYPE_CHECKING:
    from collections.abc import Iterable
    from contextlib import AbstractContextManager

    from actionlayer.executor import ActionExecutor
    from actionlayer.identity import CallerIdentity
    from actionlayer.result import ActionResult
    from actionlayer.service import Record

_HASH_ALGORITHM = "pbkdf2_sha256"
_HASH_ITERATIONS = 600_000

EMAIL_TAKEN = "This email is already registered"

PUBLIC_FIELDS = ("id", "name", "email", "created_at")


def hash_password(password: str, *, iterations: int | None = None) -> str:
    """Hash ``password`` as ``pbkdf2_sha256$iterations$salt$digest``."""
    iterations = iterations or _HASH_ITERATIONS
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), iterations)
    return f"{_HASH_ALGORITHM}${iterations}${salt}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    try:
        algorithm, iterations, salt, expected = encoded.split("$")
    except ValueError:
        return False
    if algorithm != _HASH_ALGORITHM:
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


def public_user(record: Record) -> dict[str, Any]:
    return {k: record[k] for k in PUBLIC_FIELDS if k in record}


class UserService(Service):
    """User records, searchable by name and email."""

    searchable_fields = ("name", "email")

    def find_by_email(self, email: str) -> Record | None:
        needle = email.strip().lower()
        return next(
            (r for r in self.repository.all() if str(r.get("email", "")).lower() == needle),
            None,
        )

    def atomic(self) -> AbstractContextManager[Any]:
        """Repository transaction when supported, otherwise a no-op context."""
        transaction = getattr(self.repository, "transaction", None)
        return transaction() if callable(transaction) else nullcontext()


class _UserAction(Action):
    required_capabilities: ClassVar[tuple[str, ...]] = ()

    def __init__(
        self,
        users: UserService,
        executor: ActionExecutor | None = None,
        *,
        capabilities: Iterable[str] | None = None,
    ) -> None:
        super().__init__(executor)
        self.users = users
        self.capabilities = (
            capability_names(capabilities)
            if capabilities is not None
            else self.required_capabilities
        )


class CreateUserAction(_UserAction):
    """Register a user; responds 201 with the public fields."""

    rules: ClassVar[dict[str, str]] = {
        "name": "required|string|max:255",
        "email": "required|email|max:255",
        "password": "required|string|min:8|confirmed",
    }
    messages: ClassVar[dict[str, str]] = {
        "name.required": "The name is required",
        "email.required": "The email is required",
        "email.email": "The email must be a valid address",
        "password.required": "The password is required",
        "password.min": "The password must be at least :min characters",
        "password.confirmed": "The passwords do not match",
    }

    def handle(self, data: Any, caller: CallerIdentity) -> ActionResult:
        self.validate_permissions(caller, self.capabilities)
        valid = self.validate_input(data, self.rules, self.messages)

        with self.users.atomic():
            if self.users.find_by_email(valid["email"]) is not None:
                raise ValidationFailure({"email": [EMAIL_TAKEN]})
            user = self.users.create(
                {
                    "name": valid["name"],
                    "email": valid["email"],
                    "password": hash_password(valid["password"]),
                }
            )

        return self.success(public_user(user), "User created successfully", 201)


class UpdateUserAction(_UserAction):
    """Update name and/or email of an existing user."""

    rules: ClassVar[dict[str, str]] = {
        "id": "required|integer",
        "name": "sometimes|required|string|max:255",
        "email": "sometimes|required|email|max:255",
    }

    def handle(self, data: Any, caller: CallerIdentity) -> ActionResult:
        self.validate_permissions(caller, self.capabilities)
        valid = self.validate_input(data, self.rules)
        user_id = int(valid.pop("id"))

        with self.users.atomic():
            self.users.find_by_id_or_fail(user_id)
            if "email" in valid:
                owner = self.users.find_by_email(valid["email"])
                if owner is not None and owner["id"] != user_id:
                    raise ValidationFailure({"email": [EMAIL_TAKEN]})
            user = self.users.update(user_id, valid)

        return self.success(public_user(user or {}), "User updated successfully")


class CheckEmailAction(_UserAction):
    """Report whether an email address is still available."""

    rules: ClassVar[dict[str, str]] = {"email": "required|email"}

    def handle(self, data: Any, caller: CallerIdentity) -> ActionResult:
        self.validate_permissions(caller, self.capabilities)
        valid = self.validate_input(data, self.rules)

        if self.users.find_by_email(valid["email"]) is not None:
            return self.error(EMAIL_TAKEN, {"email": [EMAIL_TAKEN]}, 409)
        return self.success({"available": True}, "Email available")


__all__ = [
    "CheckEmailAction",
    "CreateUserAction",
    "UpdateUserAction",
    "UserService",
    "hash_password",
    "verify_password",
]
