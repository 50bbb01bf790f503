"""CI/CD provider status adapters."""
