"""Prop Edge: player prop and moneyline evaluation."""

__version__ = "1.0.0"
