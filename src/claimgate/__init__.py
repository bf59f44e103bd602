"""claimgate — witness-attested claims and anonymous provider groups."""

__version__ = "0.1.0"
