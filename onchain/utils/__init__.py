"""Input parsing and display helpers."""

from onchain.utils.addresses import (
    ParsedTxInput,
    detect_chain_type,
    detect_tx_hash_type,
    is_evm_address,
    is_evm_tx_hash,
    is_solana_address,
    is_solana_signature,
    parse_tx_input,
    truncate_address,
    truncate_hash,
)
from onchain.utils.masking import mask_mapping, mask_value

__all__ = [
    "ParsedTxInput",
    "detect_chain_type",
    "detect_tx_hash_type",
    "is_evm_address",
    "is_evm_tx_hash",
    "is_solana_address",
    "is_solana_signature",
    "parse_tx_input",
    "truncate_address",
    "truncate_hash",
    "mask_mapping",
    "mask_value",
]
