"""Tests for the session: error boundaries, live memos and receipts."""

import asyncio
import json

import pytest
from unittest.mock import Mock, patch

from cdt.config import SEPOLIA_CHAIN_ID
from cdt.models import DonationDraft
from cdt.projection import Viewport
from cdt.session import CONTRACT_NOT_LOADED, THANK_YOU_MESSAGE, DonationSession
from cdt.wallet import HTTPWallet

from conftest import DONOR, FakeWallet, ONE_ETHER


@pytest.fixture
def session(config, wallet, registry):
    return DonationSession(config, wallet, registry, listen=False)


def test_connect_loads_read_model(session, wallet):
    wallet.add_memo("Ada", "thanks", ONE_ETHER // 100)

    assert asyncio.run(session.connect()) is True

    assert session.connection.address == DONOR
    assert session.connection.chain_id == SEPOLIA_CHAIN_ID
    assert session.connection.balance == ONE_ETHER
    assert session.total_donations == ONE_ETHER // 100
    assert [m.name for m in session.memos] == ["Ada"]
    assert session.status_message == ""


def test_missing_wallet_is_a_status_message(config, registry):
    session = DonationSession(config, None, registry, listen=False)

    assert asyncio.run(session.connect()) is False

    assert "No wallet" in session.status_message
    assert session.handle is None


def test_unsupported_chain_is_a_status_message(config, wallet):
    from cdt.registry import ContractRegistry

    session = DonationSession(config, wallet, ContractRegistry(), listen=False)

    assert asyncio.run(session.connect()) is False
    assert str(SEPOLIA_CHAIN_ID) in session.status_message


def test_refresh_failure_keeps_state(session, wallet):
    wallet.add_memo("Ada", "thanks", 10)
    asyncio.run(session.connect())

    wallet.add_memo("Grace", "more", 20)
    wallet.fail("eth_call")

    assert asyncio.run(session.refresh()) is False
    assert session.total_donations == 10
    assert len(session.memos) == 1
    assert session.status_message


def test_donate_before_connect(session):
    assert asyncio.run(session.donate()) is None
    assert session.donation_error == CONTRACT_NOT_LOADED


def test_donate_refreshes_and_resets(session, wallet):
    async def run():
        await session.connect()
        session.draft.name = "Ada"
        session.draft.message = "thanks"
        return await session.donate()

    receipt = asyncio.run(run())

    assert receipt is not None
    assert session.donation_success == THANK_YOU_MESSAGE
    assert session.donation_error is None
    assert (session.draft.name, session.draft.message, session.draft.amount) == ("", "", "0.001")
    assert session.total_donations == 10 ** 15
    assert session.connection.balance == ONE_ETHER - 10 ** 15
    assert [m.name for m in session.memos] == ["Ada"]
    assert wallet.methods().count("eth_getBalance") == 3


def test_refresh_failure_after_donation_keeps_connection(session, wallet):
    """The donation is confirmed but the follow-up refresh fails."""
    send = wallet._eth_sendTransaction

    def send_then_lose_node(tx):
        tx_hash = send(tx)
        wallet.fail("eth_getBalance", "node unavailable")
        return tx_hash

    wallet._eth_sendTransaction = send_then_lose_node

    async def run():
        await session.connect()
        return await session.donate(DonationDraft(name="Ada", message="thanks", amount="0.001"))

    receipt = asyncio.run(run())

    assert receipt is not None
    assert session.connection.address == DONOR
    assert session.connection.balance == ONE_ETHER
    assert session.read_model.balance == ONE_ETHER
    assert "node unavailable" in session.status_message


def test_donate_failure_is_scoped(session, wallet):
    async def run():
        await session.connect()
        draft = DonationDraft(name="Ada", message="thanks", amount="nope")
        return await session.donate(draft), draft

    receipt, draft = asyncio.run(run())

    assert receipt is None
    assert session.donation_error.startswith("Transaction failed:")
    assert draft.amount == "nope"
    assert session.connection.connected


def test_event_and_refresh_both_add_same_donation(config, wallet, registry):
    """A memo seen live and again on refresh is in the list at least once."""
    session = DonationSession(config, wallet, registry, listen=True)

    async def run():
        await session.connect()
        session.subscription.cancel()
        wallet.add_memo("Live", "hi", 42)
        session._on_memo(session.handle.decode_new_memo(wallet.logs[-1]))
        await session.refresh()

    asyncio.run(run())

    names = [m.name for m in session.memos]
    assert names.count("Live") >= 1


def test_reconnect_replaces_subscription(config, wallet, registry):
    session = DonationSession(config, wallet, registry, listen=True)

    async def run():
        await session.connect()
        first = session.subscription
        await session.connect()
        second = session.subscription
        session.close()
        return first, second

    first, second = asyncio.run(run())

    assert first is not second
    assert first.active is False
    assert second.active is False
    assert session.subscription is None


def test_chain_change_rebinds(config, registry):
    wallet = FakeWallet(chain_id=1)
    session = DonationSession(config, wallet, registry, listen=False)

    async def run():
        await session.connect()
        first = session.handle
        wallet.chain_id = 1
        ok = await session.on_chain_changed(1)
        return first, ok

    first, ok = asyncio.run(run())

    assert ok is True
    assert session.handle is not first
    assert session.connection.chain_id == SEPOLIA_CHAIN_ID
    assert session.connection.address == DONOR


def test_projection_follows_memo_list(session, wallet):
    for i, amount in enumerate([3, 9, 1]):
        wallet.add_memo(f"d{i}", "", amount)
    asyncio.run(session.connect())

    projection = session.project(Viewport.DESKTOP)

    assert [m.name for m in projection.memos] == ["d1", "d0", "d2"]


def test_export_receipt(session, tmp_path):
    async def run():
        await session.connect()
        return await session.donate(DonationDraft(name="Ada", message="thanks", amount="0.001"))

    receipt = asyncio.run(run())
    path = session.export_receipt(tmp_path)

    assert path.name == f"transaction-receipt-{receipt.transaction_hash}.json"
    data = json.loads(path.read_text())
    assert data["transactionHash"] == receipt.transaction_hash
    assert data["status"] == "confirmed"


def test_export_without_receipt(session, tmp_path):
    assert session.export_receipt(tmp_path) is None


@patch("requests.Session.post")
def test_garbled_wallet_reply_is_a_status_message(mock_post, config, registry):
    response = Mock()
    response.raise_for_status = Mock()
    response.json.side_effect = ValueError("Expecting value: line 1 column 1 (char 0)")
    mock_post.return_value = response
    wallet = HTTPWallet(config.wallet_url)
    session = DonationSession(config, wallet, registry, listen=False)

    assert asyncio.run(session.connect()) is False

    assert "invalid response" in session.status_message
    assert session.handle is None
    wallet.close()
