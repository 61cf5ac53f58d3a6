"""Download-link forwarding engine for tracker pages."""
