"""GitHub Actions workflow provisioning service."""
