"""wabot command-line interface."""
