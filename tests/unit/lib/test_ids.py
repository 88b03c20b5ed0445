import uuid

from tinyclaw.lib import ids


def test_uuid7_is_valid_version_7():
    value = uuid.UUID(ids.uuid7())
    assert value.version == 7


def test_uuid7_sorts_in_creation_order():
    generated = [ids.uuid7() for _ in range(200)]
    assert generated == sorted(generated)
    assert len(set(generated)) == len(generated)


def test_delegation_id_carries_conversation():
    delegation = ids.delegation_id("telegram_m1")
    assert delegation.startswith("telegram_m1-")
    assert len(delegation) == len("telegram_m1-") + 8
