"""WISP: a UDP world-state session server and its headless client."""
