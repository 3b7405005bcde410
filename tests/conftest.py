from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from accounts.models import CustomUser
from assignments.models import Bid, Task
from assignments.services import BidAcceptanceService, CompletionService

from .factories import actor, make_user


@pytest.fixture
def poster(db):
    return make_user('poster@example.com', CustomUser.Role.POSTER)


@pytest.fixture
def doer(db):
    return make_user('doer@example.com', CustomUser.Role.DOER)


@pytest.fixture
def other_doer(db):
    return make_user('other.doer@example.com', CustomUser.Role.DOER)


@pytest.fixture
def outsider(db):
    return make_user('outsider@example.com', CustomUser.Role.DOER)


@pytest.fixture
def admin_user(db):
    return make_user('admin@example.com', CustomUser.Role.ADMIN)


@pytest.fixture
def task(poster):
    return Task.objects.create(
        poster=poster,
        title="Logo design",
        description="A vector logo for a bakery",
        budget=Decimal('100.00'),
    )


@pytest.fixture
def bid(task, doer):
    return Bid.objects.create(task=task, bidder=doer, amount=Decimal('60.00'), message="I can do it")


@pytest.fixture
def other_bid(task, other_doer):
    return Bid.objects.create(task=task, bidder=other_doer, amount=Decimal('80.00'), message="Me too")


@pytest.fixture
def assigned_task(task, bid, other_bid, poster):
    """Task assigned to ``doer`` through direct acceptance."""
    result = BidAcceptanceService().accept_bid(bid.id, task.id, actor(poster))
    assert result.ok, result.to_dict()
    task.refresh_from_db()
    return task


@pytest.fixture
def under_review_task(assigned_task, doer):
    result = CompletionService().submit_work(assigned_task.id, actor(doer), content="Final files attached")
    assert result.ok, result.to_dict()
    assigned_task.refresh_from_db()
    return assigned_task


@pytest.fixture
def api_client():
    return APIClient()
