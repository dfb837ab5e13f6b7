"""HTTP surface for rendering captured logs."""
