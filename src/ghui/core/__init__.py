"""Core logic for ghui: state machine, synchronization, gateways and storage."""
