"""flowbuilder - flow-graph model and validation engine for message flows."""

__version__ = "0.3.0"
