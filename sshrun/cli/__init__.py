"""sshrun command-line interface."""
