"""HTTP surface for folia."""
