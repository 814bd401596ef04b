"""SDE simulation and simulated-likelihood estimation."""
