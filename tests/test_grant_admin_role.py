import pytest
from django.core.management import CommandError, call_command

from accounts.models import CustomUser

pytestmark = pytest.mark.django_db


def test_promotes_user(doer):
    call_command('grant_admin_role', '--email', doer.email)
    assert CustomUser.objects.get(pk=doer.pk).role == CustomUser.Role.ADMIN


def test_revokes_role(admin_user):
    call_command('grant_admin_role', '--email', admin_user.email, '--revoke')
    assert CustomUser.objects.get(pk=admin_user.pk).role == CustomUser.Role.DOER


def test_unknown_email():
    with pytest.raises(CommandError):
        call_command('grant_admin_role', '--email', 'nobody@example.com')
