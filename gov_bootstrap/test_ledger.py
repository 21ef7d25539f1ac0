#!/usr/bin/env python3
"""
Tests for the Ledger signer (cast is mocked out)
"""

import subprocess

import pytest
from unittest.mock import MagicMock, patch

from gov_bootstrap.ledger import LedgerSigner

LEDGER_ADDRESS = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
REGISTRY = "0x5FbDB2315678afecb367f032d93F642f64180aa3"


def completed(stdout="", stderr="", returncode=0):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class TestLedgerAddress:
    @patch('gov_bootstrap.ledger.subprocess.run')
    def test_address_loaded(self, mock_run):
        mock_run.return_value = completed(stdout=LEDGER_ADDRESS.lower() + "\n")
        signer = LedgerSigner(MagicMock(), "http://localhost:8545", account_index=2)
        assert signer.address == LEDGER_ADDRESS
        assert mock_run.call_args.args[0] == [
            "cast", "wallet", "address", "--ledger", "--mnemonic-index", "2"
        ]

    @patch('gov_bootstrap.ledger.subprocess.run')
    def test_retries_then_succeeds(self, mock_run):
        mock_run.side_effect = [
            completed(stderr="Error: Could not connect", returncode=1),
            completed(stdout=LEDGER_ADDRESS),
        ]
        signer = LedgerSigner(MagicMock(), "http://localhost:8545")
        assert signer.address == LEDGER_ADDRESS
        assert mock_run.call_count == 2

    @patch('gov_bootstrap.ledger.subprocess.run')
    def test_gives_up(self, mock_run):
        mock_run.return_value = completed(stderr="Error: device locked", returncode=1)
        with pytest.raises(RuntimeError, match="device locked"):
            LedgerSigner(MagicMock(), "http://localhost:8545", max_attempts=3)
        assert mock_run.call_count == 3

    @patch('gov_bootstrap.ledger.subprocess.run')
    def test_cast_missing(self, mock_run):
        mock_run.side_effect = FileNotFoundError("cast")
        with pytest.raises(RuntimeError, match="Ledger connection failed"):
            LedgerSigner(MagicMock(), "http://localhost:8545", max_attempts=2)


class TestLedgerSend:
    def setup_method(self):
        self.w3 = MagicMock()
        self.w3.eth.get_transaction_count.return_value = 7
        self.w3.eth.send_raw_transaction.return_value = b'\x03' * 32
        with patch('gov_bootstrap.ledger.subprocess.run', return_value=completed(stdout=LEDGER_ADDRESS)):
            self.signer = LedgerSigner(self.w3, "http://rpc:8588", account_index=1)

    @patch('gov_bootstrap.ledger.subprocess.run')
    def test_signs_with_cast_and_broadcasts(self, mock_run):
        mock_run.return_value = completed(stdout="0xf86b0a\n")
        tx = {'from': LEDGER_ADDRESS, 'to': REGISTRY, 'data': '0xabcdef', 'value': 0,
              'gas': 30_000_000, 'gasPrice': 110 * 10 ** 9, 'chainId': 1112}

        assert self.signer.send(tx) == b'\x03' * 32
        args = mock_run.call_args.args[0]
        assert args[:6] == ["cast", "mktx", "--ledger", "--mnemonic-index", "1", "--rpc-url"]
        assert args[args.index("--chain") + 1] == "1112"
        assert args[args.index("--nonce") + 1] == "7"
        assert args[args.index("--gas-limit") + 1] == "30000000"
        assert args[args.index("--gas-price") + 1] == str(110 * 10 ** 9)
        assert "--legacy" in args
        assert args[-2:] == [REGISTRY, "0xabcdef"]
        self.w3.eth.send_raw_transaction.assert_called_once_with("0xf86b0a")

    @patch('gov_bootstrap.ledger.subprocess.run')
    def test_signing_rejected(self, mock_run):
        mock_run.side_effect = subprocess.CalledProcessError(1, "cast", stderr="rejected by user")
        with pytest.raises(RuntimeError, match="rejected by user"):
            self.signer.send({'to': REGISTRY, 'data': '0x', 'nonce': 1, 'chainId': 1})
        self.w3.eth.send_raw_transaction.assert_not_called()
