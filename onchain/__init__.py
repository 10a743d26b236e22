"""
onchain - multi-provider crypto data CLI.

============================================================
PACKAGE OVERVIEW
============================================================
Answers questions about wallets, prices, exchange accounts and prediction
markets by asking independent providers and normalizing their answers.

    config        credentials, config files, capability flags
    providers     one async client per external source
    orchestrator  provider selection, fallback, chain search, portfolio, checks
    sentiment     prediction-market sentiment scoring
    session       wallet-connect session file
    cli           argparse entry point and text rendering

============================================================
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
