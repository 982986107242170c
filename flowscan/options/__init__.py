"""Option chain classification, combo detection, sentiment and the scan pipeline."""
