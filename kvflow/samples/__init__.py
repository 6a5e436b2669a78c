"""Sample workflows built on the kvflow runner."""
