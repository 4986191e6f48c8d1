"""Extract journal records from patient portals into the EIR format and hand them to eir.space."""

__version__ = "0.1.0"
