"""Tests for the provisioning session state progression."""

import pytest

from lock_provision_mcp.models.session import (
    STATE_ORDER,
    ProvisioningSession,
    ProvisioningState,
)


def test_new_session_not_started():
    session = ProvisioningSession()
    assert session.state is ProvisioningState.NOT_STARTED
    assert not session.finished


def test_walks_every_state_in_order():
    session = ProvisioningSession()
    for state in STATE_ORDER[1:]:
        session.advance(state)
    assert session.state is ProvisioningState.DONE
    assert session.finished


def test_cannot_skip_a_step():
    session = ProvisioningSession()
    with pytest.raises(ValueError):
        session.advance(ProvisioningState.CSR)


def test_cannot_move_backwards():
    session = ProvisioningSession()
    session.advance(ProvisioningState.INFO)
    session.advance(ProvisioningState.CSR)
    with pytest.raises(ValueError):
        session.advance(ProvisioningState.INFO)


def test_fail_records_state_and_message():
    session = ProvisioningSession()
    session.advance(ProvisioningState.INFO)
    session.fail("boom")
    assert session.state is ProvisioningState.FAILED
    assert session.failed_at is ProvisioningState.INFO
    assert session.error == "boom"
    assert session.finished
    with pytest.raises(ValueError):
        session.advance(ProvisioningState.CSR)


def test_to_dict_omits_key_material():
    session = ProvisioningSession(record_id=3, lock_mac="AA:BB:CC:DD:EE:FF", imei="1" * 15)
    session.private_key = "secret"
    session.csr = "csr"
    data = session.to_dict()
    assert data["state"] == "NotStarted"
    assert data["has_csr"] is True
    assert data["has_certificate"] is False
    assert "secret" not in str(data)
