#!/usr/bin/env python3
"""
Governance bootstrap command line

  gov-bootstrap deploy                      deploy and initialize every contract
  gov-bootstrap impersonate 0xADDRESS       stake as ADDRESS on a local fork
  gov-bootstrap set-registry                update StakingReward with a Ledger
"""

import sys
import logging
import argparse

from web3.exceptions import Web3Exception

from .chain import Chain, DeploymentError, connect
from .config import DeployConfig
from .deployer import run as run_deploy
from .impersonate import impersonate_member
from .ledger import LedgerSigner
from .set_registry import set_staking_reward

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(verbose: bool = False, log_file: str = 'gov_bootstrap.log'):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gov-bootstrap",
        description="Deploy and maintain the staking governance contracts",
        epilog="Settings come from the environment or a .env file (RPC_URL, DEPLOYER_PRIVATE_KEY, ...)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("deploy", help="Deploy and initialize the governance contracts")

    impersonate = sub.add_parser("impersonate", help="Stake as another address on a fork")
    impersonate.add_argument("address", help="Address to impersonate")
    impersonate.add_argument("--address-file", help="JSON file with REGISTRY_ADDRESS")

    set_registry = sub.add_parser("set-registry", help="Update StakingReward using a Ledger")
    set_registry.add_argument("--address-file", help="JSON file with REGISTRY_ADDRESS and staker")
    set_registry.add_argument("--account-index", type=int, help="Ledger account index")
    return parser


def main(argv=None) -> int:
    args = create_parser().parse_args(argv)
    configure_logging(args.verbose)

    try:
        config = DeployConfig.from_env()
        w3 = connect(config.rpc_url, poa=config.poa_middleware)
        if args.command == "deploy":
            result = run_deploy(config, w3)
            logger.info(f"Deployment finished: {result.addresses}")
        elif args.command == "impersonate":
            chain = Chain(w3, config.artifacts_dir)
            impersonate_member(chain, args.address_file or config.address_path, args.address)
        elif args.command == "set-registry":
            index = config.ledger_account_index if args.account_index is None else args.account_index
            signer = LedgerSigner(w3, config.rpc_url, index)
            chain = Chain(w3, config.artifacts_dir, config.tx_params)
            if not set_staking_reward(chain, signer, args.address_file or config.address_path, config.output_dir):
                logger.error("StakingReward update did not succeed")
                return 1
    except (DeploymentError, Web3Exception, RuntimeError, KeyError, ValueError, OSError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Stopped by user")
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
