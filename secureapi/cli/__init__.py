"""SecureAPI command line interface."""
