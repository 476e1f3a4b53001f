"""
Chain Client
Read and write RPC access for the execution strategies.

Blocking web3 calls run in the default executor so the API stays responsive;
callers still await each call in sequence.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Dict, List, Optional

import requests
from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.exceptions import TimeExhausted

from sentry_config import capture_blockchain_breadcrumb

from .abi_codec import decode_output, encode_call
from .config import ChainConfig, get_config
from .errors import ChainError, ChainTimeoutError

logger = logging.getLogger("ChainClient")

RECEIPT_SUCCESS = "success"
RECEIPT_REVERTED = "reverted"


def get_web3(rpc_url: Optional[str] = None, timeout: Optional[int] = None) -> Web3:
    """Web3 over HTTP with a bounded per-request timeout"""
    chain_config = get_config().chain
    url = rpc_url or chain_config.rpc_url
    return Web3(Web3.HTTPProvider(url, request_kwargs={"timeout": timeout or chain_config.rpc_timeout}))


@dataclass
class TxReceipt:
    """Inclusion result of a submitted transaction"""
    tx_hash: str
    status: str
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    logs: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == RECEIPT_SUCCESS


def _normalize_log(log) -> Dict[str, Any]:
    return {
        "address": log["address"],
        "topics": [Web3.to_hex(t) for t in log["topics"]],
        "data": Web3.to_hex(log["data"]),
    }


class ChainClient:
    """
    Thin wrapper over web3 used by every strategy.

    Usage:
        chain = ChainClient()
        balance = await chain.balance_of(token, user)
        tx_hash = await chain.send_transaction(account, to, data, gas=100_000)
        receipt = await chain.wait_for_receipt(tx_hash)
    """

    def __init__(self, w3: Optional[Web3] = None, chain_config: Optional[ChainConfig] = None):
        self.config = chain_config or get_config().chain
        self.w3 = w3 or get_web3(self.config.rpc_url, self.config.rpc_timeout)

    async def _run(self, fn: Callable, *args, **kwargs):
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, partial(fn, *args, **kwargs))
        except requests.exceptions.Timeout as e:
            raise ChainTimeoutError(self.config.chain_name, f"RPC request timed out: {e}") from e
        except ChainError:
            raise
        except Exception as e:
            raise ChainError(self.config.chain_name, f"RPC call failed: {e}") from e

    # ==========================================
    # READS
    # ==========================================

    async def call(self, to: str, data: bytes) -> bytes:
        """eth_call simulation; no state is mutated"""
        result = await self._run(
            self.w3.eth.call,
            {"to": Web3.to_checksum_address(to), "data": Web3.to_hex(data)},
        )
        return bytes(result)

    async def balance_of(self, token: str, owner: str) -> int:
        data = encode_call("balanceOf(address)", [Web3.to_checksum_address(owner)])
        (balance,) = decode_output(["uint256"], await self.call(token, data))
        return balance

    async def decimals(self, token: str) -> int:
        data = encode_call("decimals()", [])
        (value,) = decode_output(["uint8"], await self.call(token, data))
        return value

    # ==========================================
    # WRITES
    # ==========================================

    def _build_and_send(self, account: LocalAccount, to: str, data: bytes, gas: int, value: int) -> str:
        nonce = self.w3.eth.get_transaction_count(account.address, "pending")
        gas_price = self.w3.eth.gas_price * (100 + self.config.gas_buffer_percent) // 100

        tx = {
            "from": account.address,
            "to": Web3.to_checksum_address(to),
            "data": Web3.to_hex(data),
            "value": value,
            "gas": gas,
            "gasPrice": gas_price,
            "nonce": nonce,
            "chainId": self.config.chain_id,
        }

        signed = account.sign_transaction(tx)
        tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        return Web3.to_hex(tx_hash)

    async def send_transaction(
        self,
        account: LocalAccount,
        to: str,
        data: bytes,
        gas: int,
        value: int = 0
    ) -> str:
        """Sign with the session account and submit with an explicit gas ceiling"""
        tx_hash = await self._run(self._build_and_send, account, to, data, gas, value)
        capture_blockchain_breadcrumb(
            "send_transaction",
            chain=self.config.chain_name,
            details={"to": to, "gas": gas, "tx_hash": tx_hash},
        )
        logger.info(f"[ChainClient] Submitted {tx_hash} to {to[:10]}... (gas ceiling {gas})")
        return tx_hash

    async def wait_for_receipt(self, tx_hash: str) -> TxReceipt:
        """Block until inclusion or until the receipt timeout elapses"""
        try:
            receipt = await self._run(
                self.w3.eth.wait_for_transaction_receipt,
                tx_hash,
                timeout=self.config.receipt_timeout,
                poll_latency=self.config.receipt_poll_interval,
            )
        except ChainError as e:
            if isinstance(e.__cause__, TimeExhausted):
                raise ChainTimeoutError(
                    self.config.chain_name,
                    f"Receipt not found within {self.config.receipt_timeout}s",
                    tx_hash,
                ) from e
            raise

        return TxReceipt(
            tx_hash=tx_hash,
            status=RECEIPT_SUCCESS if receipt["status"] == 1 else RECEIPT_REVERTED,
            block_number=receipt.get("blockNumber"),
            gas_used=receipt.get("gasUsed"),
            logs=[_normalize_log(log) for log in receipt.get("logs", [])],
        )


# Global instance
_chain_client: Optional[ChainClient] = None


def get_chain_client() -> ChainClient:
    """Get or create global ChainClient instance"""
    global _chain_client
    if _chain_client is None:
        _chain_client = ChainClient()
    return _chain_client
