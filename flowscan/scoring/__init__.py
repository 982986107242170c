"""Composite scoring engines for hedge likelihood and fundamental value."""
