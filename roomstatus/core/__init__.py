"""Shared infrastructure: configuration, logging, HTTP clients, time and storage."""
