"""Socket.IO controllers for the relay service."""
