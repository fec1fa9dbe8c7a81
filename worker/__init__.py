"""Process entry point for the provisioning sample."""
