"""Badge submission review and earning service."""
