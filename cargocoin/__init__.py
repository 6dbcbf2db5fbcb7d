"""
CargoCoin - ledger core for the CargoCoin gas token.

The token is capped at one billion CC, burns 2% of every ordinary
transfer, and is operated through role-gated administrative calls behind
an upgradeable proxy. See `cargocoin.ledger` for the public surface.
"""

__version__ = "1.0.0"
