"""Commands shipped with wabot. Each module here is loaded by the registry."""
