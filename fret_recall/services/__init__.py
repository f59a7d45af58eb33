"""Audio sources and the detection hand-off."""
