from dataclasses import dataclass

from rest_framework.exceptions import NotAuthenticated

from .models import CustomUser


@dataclass(frozen=True)
class ActingUser:
    """The caller of a lifecycle operation, resolved once at the API boundary."""

    id: int
    role: str

    @property
    def is_admin(self):
        return self.role == CustomUser.Role.ADMIN

    @classmethod
    def from_user(cls, user):
        return cls(id=user.pk, role=user.role)


def acting_user_from_request(request):
    user = request.user
    if not user or not user.is_authenticated:
        raise NotAuthenticated()
    return ActingUser.from_user(user)
