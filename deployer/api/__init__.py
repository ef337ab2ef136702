"""HTTP API for the deployer."""
