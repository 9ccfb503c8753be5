"""Gate services - balance oracle, tier policy and the decision pipeline."""
