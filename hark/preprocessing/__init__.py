"""Audio normalization into the canonical engine format."""
