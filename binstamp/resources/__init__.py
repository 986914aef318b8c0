"""Files installed into the runtime source tree (entrypoint shim)."""
