"""
ERC-20 calldata and receipt helpers
"""

from typing import Optional

from web3 import Web3

from infrastructure.abi_codec import decode_output, encode_call, to_bytes
from infrastructure.chain import TxReceipt

TRANSFER_TOPIC = Web3.to_hex(Web3.keccak(text="Transfer(address,address,uint256)"))


def encode_transfer(to: str, amount: int) -> bytes:
    return encode_call("transfer(address,uint256)", [Web3.to_checksum_address(to), amount])


def encode_approve(spender: str, amount: int) -> bytes:
    return encode_call("approve(address,uint256)", [Web3.to_checksum_address(spender), amount])


def amount_received(receipt: TxReceipt, token: str, recipient: str) -> Optional[int]:
    """
    Sum of `token` Transfer events to `recipient` in a receipt.
    Returns None when the receipt carries no such event.
    """
    token = Web3.to_checksum_address(token)
    recipient = Web3.to_checksum_address(recipient)

    total = None
    for log in receipt.logs:
        topics = log.get("topics") or []
        if len(topics) < 3 or topics[0].lower() != TRANSFER_TOPIC:
            continue
        if Web3.to_checksum_address(log["address"]) != token:
            continue
        (to,) = decode_output(["address"], to_bytes(topics[2]))
        if Web3.to_checksum_address(to) != recipient:
            continue
        (value,) = decode_output(["uint256"], to_bytes(log["data"]))
        total = (total or 0) + value
    return total
