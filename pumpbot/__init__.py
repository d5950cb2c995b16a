"""pumpbot – strategy execution engine for bonding-curve / AMM tokens."""

__version__ = "0.3.0"
