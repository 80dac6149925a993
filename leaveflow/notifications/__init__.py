"""Leave domain events and the in-app notifications they produce."""
