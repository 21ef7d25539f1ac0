"""
Web3 plumbing shared by the deployment scripts: connection, artifacts,
signers and receipt-checked transactions
"""

import os
import json
import logging
from typing import Any, Dict, Optional, Tuple

from eth_account import Account
from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware

logger = logging.getLogger(__name__)

RECEIPT_TIMEOUT = 300


class DeploymentError(Exception):
    """A connection, artifact or transaction problem that stops a run"""


def connect(rpc_url: str, poa: bool = True) -> Web3:
    """Open an HTTP connection, injecting the extra-data POA middleware if asked"""
    w3 = Web3(Web3.HTTPProvider(rpc_url))
    if poa:
        w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
    if not w3.is_connected():
        raise DeploymentError(f"Could not connect to RPC URL: {rpc_url}")
    logger.info(f"Connected to blockchain at {rpc_url}")
    return w3


def load_artifact(artifacts_dir: str, name: str) -> Tuple[list, str]:
    """
    Find the hardhat artifact <name>.json below artifacts_dir

    Returns:
        (abi, bytecode)
    """
    for root, _, files in os.walk(artifacts_dir):
        if f"{name}.json" in files:
            with open(os.path.join(root, f"{name}.json"), 'r') as f:
                data = json.load(f)
            if 'abi' not in data:
                continue
            return data['abi'], data.get('bytecode', '0x')
    raise DeploymentError(f"Artifact {name}.json not found under {artifacts_dir}")


def bytes32(text: str) -> bytes:
    """UTF-8 text right padded to 32 bytes, keeping a terminating zero byte"""
    raw = text.encode('utf-8')
    if len(raw) > 31:
        raise ValueError(f"bytes32 string must be less than 32 bytes: {text}")
    return raw.ljust(32, b'\x00')


class LocalSigner:
    """Signs with a private key held in memory"""

    def __init__(self, w3: Web3, private_key: str):
        self.w3 = w3
        self.account = Account.from_key(private_key)

    @property
    def address(self) -> str:
        return self.account.address

    def send(self, tx: Dict[str, Any]) -> bytes:
        tx = dict(tx)
        tx.setdefault('nonce', self.w3.eth.get_transaction_count(self.address, 'pending'))
        tx.setdefault('chainId', self.w3.eth.chain_id)
        signed = self.account.sign_transaction(tx)
        return self.w3.eth.send_raw_transaction(signed.raw_transaction)


class NodeSigner:
    """Account unlocked on the node itself (dev node accounts, impersonation)"""

    def __init__(self, w3: Web3, address: str):
        self.w3 = w3
        self.address = Web3.to_checksum_address(address)

    def send(self, tx: Dict[str, Any]) -> bytes:
        return self.w3.eth.send_transaction(tx)


class Chain:
    def __init__(self, w3: Web3, artifacts_dir: str, tx_params: Optional[Dict[str, int]] = None):
        self.w3 = w3
        self.artifacts_dir = artifacts_dir
        self.tx_params = dict(tx_params or {})
        self._artifacts: Dict[str, Tuple[list, str]] = {}

    def artifact(self, name: str) -> Tuple[list, str]:
        if name not in self._artifacts:
            self._artifacts[name] = load_artifact(self.artifacts_dir, name)
        return self._artifacts[name]

    def contract_at(self, name: str, address: str):
        """Bind the ABI of `name` to an address (proxies take their implementation's ABI)"""
        abi, _ = self.artifact(name)
        return self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    def _base_tx(self, signer, value: int = 0) -> Dict[str, Any]:
        tx = {'from': signer.address, 'value': value}
        tx.update(self.tx_params)
        return tx

    def wait(self, tx_hash) -> Any:
        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=RECEIPT_TIMEOUT)
        if receipt['status'] != 1:
            raise DeploymentError(f"Transaction {Web3.to_hex(tx_hash)} reverted")
        return receipt

    def deploy(self, name: str, signer, *args):
        """Deploy `name` with constructor args and return (contract, receipt)"""
        abi, bytecode = self.artifact(name)
        factory = self.w3.eth.contract(abi=abi, bytecode=bytecode)
        tx = factory.constructor(*args).build_transaction(self._base_tx(signer))
        tx_hash = signer.send(tx)
        logger.info(f"{name} deployment sent: {Web3.to_hex(tx_hash)}")
        receipt = self.wait(tx_hash)
        address = receipt['contractAddress']
        logger.info(f"{name} deployed at {address}")
        return self.w3.eth.contract(address=address, abi=abi), receipt

    def transact(self, signer, call, value: int = 0):
        """Send a prepared contract function call and wait for its receipt"""
        tx = call.build_transaction(self._base_tx(signer, value))
        tx_hash = signer.send(tx)
        logger.info(f"{call.fn_name} sent: {Web3.to_hex(tx_hash)}")
        return self.wait(tx_hash)

    def transfer(self, signer, to: str, value: int):
        tx = self._base_tx(signer, value)
        tx['to'] = Web3.to_checksum_address(to)
        tx_hash = signer.send(tx)
        logger.info(f"Transfer of {value} wei to {to} sent: {Web3.to_hex(tx_hash)}")
        return self.wait(tx_hash)
