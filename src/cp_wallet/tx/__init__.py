"""Transaction building, sequencing and confirmation."""
