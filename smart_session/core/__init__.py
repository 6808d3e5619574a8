"""Session core: account derivation, submission, confirmation and lifecycle."""
