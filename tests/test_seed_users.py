from __future__ import annotations

from account_service.domain.account import Role
from account_service.domain.contracts import RegisterInput
from scripts.seed_users import seed


def _payload(email="ops@example.com"):
    return RegisterInput(email=email, password="secret1", name="Ops")


def test_seed_creates_plain_users(service, repository):
    seeded = seed(service, repository, [_payload(), _payload("other@example.com")])

    assert [account.email for account in seeded] == ["ops@example.com", "other@example.com"]
    assert all(account.role == Role.user for account in repository.accounts.values())


def test_seed_admin_promotes_new_account(service, repository):
    (account,) = seed(service, repository, [_payload()], Role.admin)

    assert account.role == Role.admin
    assert repository.accounts[account.account_id].role == Role.admin


def test_seed_admin_promotes_already_registered_account(service, repository):
    (existing,) = seed(service, repository, [_payload()])
    assert existing.role == Role.user

    (promoted,) = seed(service, repository, [_payload("Ops@Example.com")], Role.admin)

    assert promoted.account_id == existing.account_id
    assert repository.accounts[existing.account_id].role == Role.admin
    assert len(repository.accounts) == 1


def test_seed_rerun_without_role_leaves_existing_account_alone(service, repository):
    (admin,) = seed(service, repository, [_payload()], Role.admin)

    (again,) = seed(service, repository, [_payload()])

    assert again.account_id == admin.account_id
    assert repository.accounts[admin.account_id].role == Role.admin
