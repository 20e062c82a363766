"""Tests for delegation transaction state transitions."""

import pytest

from webapi_client.contracts import DelegationSession, Mode
from webapi_client.errors import FlowStateError, ProtocolError
from webapi_client.flow import FlowState, FlowTransaction


def test_hpa_happy_path():
    tx = FlowTransaction.resume(Mode.HPA)
    for state in (
        FlowState.TOKEN_EXCHANGED,
        FlowState.DELEGATE_RESOLVED,
        FlowState.AUTHORIZATIONS_RESOLVED,
        FlowState.DONE,
    ):
        tx.advance(state)
    assert tx.finished
    assert tx.history[0] is FlowState.REDIRECTED


def test_token_exchange_requires_registration():
    tx = FlowTransaction(Mode.HPA)
    with pytest.raises(FlowStateError):
        tx.advance(FlowState.TOKEN_EXCHANGED)


def test_roles_not_reachable_in_hpa_mode():
    tx = FlowTransaction.resume(Mode.HPA)
    tx.advance(FlowState.TOKEN_EXCHANGED)
    with pytest.raises(FlowStateError):
        tx.advance(FlowState.ROLES_RESOLVED)


def test_delegate_not_reachable_in_ypa_mode():
    tx = FlowTransaction.resume(Mode.YPA)
    tx.advance(FlowState.TOKEN_EXCHANGED)
    with pytest.raises(FlowStateError):
        tx.advance(FlowState.DELEGATE_RESOLVED)


def test_failed_is_terminal():
    tx = FlowTransaction(Mode.YPA)
    tx.advance(FlowState.REGISTERED)
    tx.fail()
    assert tx.state is FlowState.FAILED
    with pytest.raises(FlowStateError):
        tx.advance(FlowState.REDIRECTED)


def test_no_reentry_into_prior_state():
    tx = FlowTransaction(Mode.HPA)
    tx.advance(FlowState.REGISTERED)
    with pytest.raises(FlowStateError):
        tx.advance(FlowState.REGISTERED)


def test_session_keeps_id_when_token_attached():
    session = DelegationSession(web_api_session_id="S1", mode=Mode.HPA)
    with_token = session.with_token("T1")
    assert with_token.web_api_session_id == "S1"
    assert with_token.bearer == "Bearer T1"
    assert session.access_token is None


def test_session_requires_id():
    with pytest.raises(ValueError):
        DelegationSession(web_api_session_id="", mode=Mode.HPA)


def test_bearer_without_token_fails_closed():
    session = DelegationSession(web_api_session_id="S1", mode=Mode.HPA)
    with pytest.raises(ProtocolError):
        session.bearer
