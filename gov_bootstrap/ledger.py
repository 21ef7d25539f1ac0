"""
Ledger hardware wallet signer

Relies on Foundry's `cast` for talking to the device: the address comes from
`cast wallet address --ledger`, transactions are signed offline with
`cast mktx --ledger` and broadcast through web3.
"""

import logging
import subprocess
from typing import Any, Dict, List

from web3 import Web3

logger = logging.getLogger(__name__)


class LedgerSigner:
    def __init__(self, w3: Web3, rpc_url: str, account_index: int = 0, max_attempts: int = 3):
        self.w3 = w3
        self.rpc_url = rpc_url
        self.account_index = account_index
        self.max_attempts = max_attempts
        self.address = self._load_address()

    @property
    def ledger_args(self) -> List[str]:
        return ["--ledger", "--mnemonic-index", str(self.account_index)]

    def _load_address(self) -> str:
        """Read the account address from the device, retrying while it is locked"""
        last_error = "Unknown error"
        for attempt in range(self.max_attempts):
            logger.info(f"Checking Ledger connection (attempt {attempt + 1}/{self.max_attempts})")
            try:
                result = subprocess.run(
                    ["cast", "wallet", "address"] + self.ledger_args,
                    capture_output=True, text=True, timeout=30
                )
            except (OSError, subprocess.TimeoutExpired) as e:
                last_error = str(e)
                logger.warning(f"Error checking Ledger: {e}")
                continue

            output = result.stdout.strip()
            if result.returncode == 0 and output.startswith("0x"):
                address = Web3.to_checksum_address(output.split()[0])
                logger.info(f"Ledger connected, using {address} (index {self.account_index})")
                return address

            last_error = result.stderr.strip() or "Unknown error"
            logger.warning("Ledger not detected: make sure it is connected, unlocked "
                           "and the Ethereum app is open")
        raise RuntimeError(f"Ledger connection failed: {last_error}")

    def _mktx_args(self, tx: Dict[str, Any]) -> List[str]:
        args = ["cast", "mktx"] + self.ledger_args + [
            "--rpc-url", self.rpc_url,
            "--chain", str(tx.get('chainId', self.w3.eth.chain_id)),
            "--nonce", str(tx['nonce']),
            "--value", str(tx.get('value', 0)),
        ]
        if 'gas' in tx:
            args += ["--gas-limit", str(tx['gas'])]
        if 'gasPrice' in tx:
            args += ["--gas-price", str(tx['gasPrice']), "--legacy"]
        args.append(tx['to'])
        data = tx.get('data')
        if data:
            args.append(Web3.to_hex(data) if isinstance(data, bytes) else data)
        return args

    def send(self, tx: Dict[str, Any]) -> bytes:
        """Sign on the device (confirm on screen) and broadcast"""
        tx = dict(tx)
        tx.setdefault('nonce', self.w3.eth.get_transaction_count(self.address, 'pending'))
        logger.info("Please confirm the transaction on the Ledger device")
        try:
            result = subprocess.run(self._mktx_args(tx), capture_output=True, text=True, check=True)
        except subprocess.CalledProcessError as e:
            raise RuntimeError(f"Ledger signing failed: {e.stderr.strip() or e}") from e
        raw_tx = result.stdout.strip().split()[-1]
        return self.w3.eth.send_raw_transaction(raw_tx)
