"""Configuration for sshrun."""
