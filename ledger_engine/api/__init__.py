"""HTTP collaborator layer over the ledger core."""
