"""
Transaction and receipt files written after a run
"""

import os
import json
import logging
from typing import Any, Iterable, List

from web3 import Web3
from web3.exceptions import TransactionNotFound

logger = logging.getLogger(__name__)


def _plain(obj: Any) -> Any:
    """AttributeDict / HexBytes trees as plain JSON values"""
    return json.loads(Web3.to_json(obj))


def write_json(path: str, data: Any):
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(_plain(data), f, indent=2)
    logger.info(f"Wrote {path}")


def fetch_transactions(w3: Web3, hashes: Iterable) -> List[Any]:
    return [w3.eth.get_transaction(tx_hash) for tx_hash in hashes]


def collect_receipts(w3: Web3, hashes: Iterable) -> List[Any]:
    """Fetch the receipt of every hash, logging which ones went through"""
    receipts = []
    for i, tx_hash in enumerate(hashes):
        try:
            receipt = w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            receipt = None
        receipts.append(receipt)
        if receipt is None or receipt['status'] == 0:
            logger.warning(f"{i} is not ok")
        else:
            logger.info(f"{i} is ok")
    return receipts


def all_ok(receipts: Iterable) -> bool:
    return all(r is not None and r['status'] == 1 for r in receipts)


def write_tx_file(path: str, txs: List[Any]):
    write_json(path, {'txs': txs})


def write_receipts_file(path: str, receipts: List[Any]):
    write_json(path, {'receipts': receipts})


def persist_run(w3: Web3, hashes: List, output_dir: str, prefix: str) -> List[Any]:
    """Write <prefix>_tx.json and <prefix>_tx_receipts.json, returning the receipts"""
    write_tx_file(os.path.join(output_dir, f"{prefix}_tx.json"), fetch_transactions(w3, hashes))
    receipts = collect_receipts(w3, hashes)
    write_receipts_file(os.path.join(output_dir, f"{prefix}_tx_receipts.json"), receipts)
    return receipts
