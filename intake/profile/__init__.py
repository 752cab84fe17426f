"""BusinessProfile contracts and the normalizer/validator."""
