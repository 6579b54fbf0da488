"""Example actions and services demonstrating the layer end to end."""
