# Bumped by hand on each release.
version = "0.1.0"
