"""Console input/output for the interactive shell."""
