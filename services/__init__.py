"""Gateway services: routing, rewriting, injection and upstream transport."""
