"""Nonparametric simulated maximum likelihood for a sentiment-driven price/volatility model."""
__version__ = "0.1.0"
