"""
ABI helpers shared by the chain client and the protocol integrations.
Calldata is built from canonical signatures with eth_abi so every encoding
is byte-exact regardless of the installed web3 contract API.
"""

from functools import lru_cache
from typing import Any, Sequence, Tuple

from eth_abi import decode, encode
from eth_abi.grammar import parse
from web3 import Web3


@lru_cache(maxsize=64)
def function_selector(signature: str) -> bytes:
    """4-byte selector for a canonical signature, e.g. 'transfer(address,uint256)'"""
    return bytes(Web3.keccak(text=signature)[:4])


def _arg_types(signature: str) -> Sequence[str]:
    """Top-level argument types of a canonical signature (tuples kept whole)"""
    params = signature[signature.index("("):]
    if params == "()":
        return []
    return [component.to_type_str() for component in parse(params).components]


def encode_call(signature: str, args: Sequence[Any]) -> bytes:
    """selector || abi.encode(args)"""
    return function_selector(signature) + encode(list(_arg_types(signature)), list(args))


def decode_output(types: Sequence[str], data: bytes) -> Tuple[Any, ...]:
    return decode(list(types), bytes(data))


def to_bytes(value) -> bytes:
    """Accept hex strings or bytes-like values"""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return bytes(Web3.to_bytes(hexstr=value))
