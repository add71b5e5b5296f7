"""Shared fixtures: an in-memory wallet that plays a chain with the contract deployed."""

import pytest
from eth_abi import decode, encode
from eth_utils import (
    decode_hex,
    encode_hex,
    event_signature_to_log_topic,
    function_signature_to_4byte_selector,
    to_checksum_address,
)

from cdt.config import CoffeeConfig, SEPOLIA_CHAIN_ID
from cdt.errors import WalletRequestError
from cdt.registry import ContractRegistry

CONTRACT = "0x2F3B3bC31FEc78A4378E6ff18B8F9F50667d45df"
DONOR = "0x1111111111111111111111111111111111111111"
OTHER = "0x2222222222222222222222222222222222222222"
ONE_ETHER = 10 ** 18

MEMO_TUPLE = "(string,string,uint256,address,uint256)"
NEW_MEMO_TOPIC = encode_hex(event_signature_to_log_topic(
    "NewMemo(string,string,uint256,address,uint256)"
))
SELECTORS = {
    encode_hex(function_signature_to_4byte_selector(sig)): name
    for name, sig in [
        ("buyCoffee", "buyCoffee(string,string)"),
        ("totalDonations", "totalDonations()"),
        ("getMemos", "getMemos()"),
    ]
}


class FakeWallet:
    """Scriptable EIP-1193 wallet backed by a tiny chain."""

    def __init__(self, chain_id=SEPOLIA_CHAIN_ID, accounts=None, balance=ONE_ETHER):
        self.chain_id = chain_id
        self.accounts = [DONOR] if accounts is None else accounts
        self.known_chains = {1, SEPOLIA_CHAIN_ID}
        self.balances = {DONOR.lower(): balance}
        self.block = 100
        self.memos = []
        self.logs = []
        self.receipts = {}
        self.calls = []
        self.errors = {}
        self.reject_switch = None
        self.revert_next = False

    def fail(self, method, message="boom", code=-32603):
        self.errors[method] = WalletRequestError(message, code=code)

    def add_memo(self, name, message, amount, sender=OTHER, emit=True):
        """Record a donation made by someone else."""
        self.block += 1
        timestamp = 1_700_000_000 + self.block
        self.memos.append((name, message, timestamp, sender, amount))
        if emit:
            self.logs.append(self._log(name, message, timestamp, sender, amount))
        return timestamp

    def _log(self, name, message, timestamp, sender, amount):
        return {
            "address": CONTRACT,
            "blockNumber": hex(self.block),
            "blockHash": "0x" + f"{self.block:064x}",
            "transactionHash": "0x" + f"{len(self.logs) + 1:064x}",
            "transactionIndex": "0x0",
            "logIndex": "0x0",
            "topics": [NEW_MEMO_TOPIC, encode_hex(encode(["address"], [sender]))],
            "data": encode_hex(encode(
                ["string", "string", "uint256", "uint256"], [name, message, timestamp, amount]
            )),
        }

    def add_raw_log(self, data):
        """Emit a NewMemo log whose data is ``data`` as given."""
        self.block += 1
        log = self._log("", "", 0, OTHER, 0)
        log["data"] = data
        self.logs.append(log)

    def methods(self):
        return [method for method, _ in self.calls]

    async def request(self, method, params=None):
        params = params or []
        self.calls.append((method, params))
        if method in self.errors:
            raise self.errors[method]
        return getattr(self, "_" + method)(*params)

    def _eth_requestAccounts(self):
        return list(self.accounts)

    def _eth_chainId(self):
        return hex(self.chain_id)

    def _wallet_switchEthereumChain(self, params):
        target = int(params["chainId"], 16)
        if self.reject_switch is not None:
            raise WalletRequestError("switch failed", code=self.reject_switch)
        if target not in self.known_chains:
            raise WalletRequestError("Unrecognized chain ID", code=4902)
        self.chain_id = target

    def _wallet_addEthereumChain(self, params):
        target = int(params["chainId"], 16)
        self.known_chains.add(target)
        self.chain_id = target

    def _eth_blockNumber(self):
        return hex(self.block)

    def _eth_getBalance(self, address, block):
        return hex(self.balances.get(address.lower(), 0))

    def _eth_call(self, tx, block):
        name = SELECTORS[tx["data"][:10]]
        if name == "totalDonations":
            total = sum(memo[4] for memo in self.memos)
            return encode_hex(encode(["uint256"], [total]))
        if name == "getMemos":
            return encode_hex(encode([MEMO_TUPLE + "[]"], [self.memos]))
        raise WalletRequestError("execution reverted")

    def _eth_sendTransaction(self, tx):
        value = int(tx["value"], 16)
        sender = tx["from"].lower()
        if self.balances.get(sender, 0) < value:
            raise WalletRequestError("insufficient funds for gas * price + value", code=-32000)

        name, message = decode(["string", "string"], decode_hex(tx["data"])[4:])
        tx_hash = "0x" + f"{len(self.receipts) + 1:064x}"
        status = "0x0" if self.revert_next else "0x1"
        if not self.revert_next:
            self.balances[sender] -= value
            self.add_memo(name, message, value, sender=to_checksum_address(tx["from"]))
        else:
            self.block += 1
        self.receipts[tx_hash] = {
            "transactionHash": tx_hash,
            "status": status,
            "blockNumber": hex(self.block),
            "blockHash": "0x" + "ab" * 32,
            "from": tx["from"],
            "to": tx["to"],
            "gasUsed": hex(21000),
        }
        return tx_hash

    def _eth_getTransactionReceipt(self, tx_hash):
        return self.receipts.get(tx_hash)

    def _eth_getLogs(self, criteria):
        start = int(criteria["fromBlock"], 16)
        end = int(criteria["toBlock"], 16)
        return [log for log in self.logs if start <= int(log["blockNumber"], 16) <= end]


@pytest.fixture
def config():
    """Configuration targeting Sepolia."""
    return CoffeeConfig(
        wallet_url="http://localhost:8545",
        chain_id=SEPOLIA_CHAIN_ID,
        rpc_url="https://rpc.sepolia.example",
        explorer_url="https://sepolia.etherscan.io/",
        poll_interval=0.01
    )


@pytest.fixture
def wallet():
    return FakeWallet()


@pytest.fixture
def registry():
    registry = ContractRegistry()
    registry.register(SEPOLIA_CHAIN_ID, CONTRACT)
    return registry
