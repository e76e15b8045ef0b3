from unittest.mock import AsyncMock

import pytest

from transform_pipeline.jobs.errors import NotFoundError
from transform_pipeline.jobs.recipients import AlreadySubmitted, InvalidFormat, Ok, normalize_address, submit_recipient_address


@pytest.fixture
def convergence():
  mock = AsyncMock()
  mock.check_and_notify.return_value = "not_ready"
  return mock


@pytest.mark.parametrize("address", ["guest@example.com", "  first.last+tag@sub.example.co.uk  "])
def test_valid_addresses_are_accepted(address):
  assert normalize_address(address) == address.strip()


@pytest.mark.parametrize("address", ["", "   ", "guest", "guest@", "@example.com", "guest@example", "two words@example.com", "a@b.c" + "x" * 260])
def test_invalid_addresses_are_rejected(address):
  assert normalize_address(address) is None


@pytest.mark.anyio
async def test_first_address_is_stored_and_triggers_check(store, sessions_repo, convergence):
  result = await submit_recipient_address("proj-1", "sess-1", " guest@example.com ", sessions_repo=sessions_repo, convergence=convergence)

  assert result == Ok()
  assert store.sessions["sess-1"].recipient_address == "guest@example.com"
  convergence.check_and_notify.assert_awaited_once_with("proj-1", "sess-1")


@pytest.mark.anyio
async def test_second_address_is_rejected_and_first_kept(store, sessions_repo, convergence):
  await submit_recipient_address("proj-1", "sess-1", "first@example.com", sessions_repo=sessions_repo, convergence=convergence)

  result = await submit_recipient_address("proj-1", "sess-1", "second@example.com", sessions_repo=sessions_repo, convergence=convergence)

  assert result == AlreadySubmitted()
  assert store.sessions["sess-1"].recipient_address == "first@example.com"
  assert convergence.check_and_notify.await_count == 1


@pytest.mark.anyio
async def test_invalid_format_writes_nothing(store, sessions_repo, convergence):
  result = await submit_recipient_address("proj-1", "sess-1", "not-an-email", sessions_repo=sessions_repo, convergence=convergence)

  assert isinstance(result, InvalidFormat)
  assert store.sessions["sess-1"].recipient_address is None
  convergence.check_and_notify.assert_not_awaited()


@pytest.mark.anyio
async def test_convergence_failure_does_not_change_intake_result(store, sessions_repo, convergence):
  convergence.check_and_notify.side_effect = RuntimeError("database hiccup")

  result = await submit_recipient_address("proj-1", "sess-1", "guest@example.com", sessions_repo=sessions_repo, convergence=convergence)

  assert result == Ok()
  assert store.sessions["sess-1"].recipient_address == "guest@example.com"


@pytest.mark.anyio
async def test_unknown_session_raises_not_found(sessions_repo, convergence):
  with pytest.raises(NotFoundError):
    await submit_recipient_address("proj-1", "missing", "guest@example.com", sessions_repo=sessions_repo, convergence=convergence)
