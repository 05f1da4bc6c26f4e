"""On-disk archive of uploaded artifacts."""
