"""HTTP surface for the alignment engine."""
