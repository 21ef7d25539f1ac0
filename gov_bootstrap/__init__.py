"""
Governance Bootstrap
====================

Deployment and maintenance scripts for the staking governance contracts:
- codec: member roster payload for GovImp.initOnce
- deployer: full bootstrap deployment
- impersonate: join a deployment as another address on a local fork
- set_registry: Ledger-signed registry maintenance
"""

__version__ = "1.0.0"
