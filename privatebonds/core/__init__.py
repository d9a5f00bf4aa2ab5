"""Protocol primitives: hashing, canonical encoding, events, config, errors."""
