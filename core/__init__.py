"""Operation engine for the Lando GUI backend."""
