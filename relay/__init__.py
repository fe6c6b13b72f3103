"""Chatfuel ↔ Dify relay: answer normalization and delivery."""
