"""Framework adapters producing InboundTransaction values."""
